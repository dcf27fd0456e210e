from fightbet.models.user import User, UserRole
from fightbet.models.wallet import Wallet
from fightbet.models.transaction import Transaction, TransactionType, TransactionStatus, PaymentProvider
from fightbet.models.fight import Fighter, Fight, FightResult, FightStatus, Corner
from fightbet.models.bet import Bet, BetStatus
from fightbet.models.notification import Notification

__all__ = [
    "User", "UserRole", "Wallet",
    "Transaction", "TransactionType", "TransactionStatus", "PaymentProvider",
    "Fighter", "Fight", "FightResult", "FightStatus", "Corner",
    "Bet", "BetStatus", "Notification",
]
