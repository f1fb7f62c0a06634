from .user import User
from .quiz import Quiz
from .question import Question
from .attempt import QuizAttempt, QuestionAttempt, Answer
from .payment import DailyPayment, Payment
from .wallet import WalletTransaction
from .prize import Prize, PrizeRedemption, Winning
from .security_event import SecurityEvent
from .rate_limit import RateLimitHit
from .stream import StreamConfig

__all__ = [
	"User",
	"Quiz",
	"Question",
	"QuizAttempt",
	"QuestionAttempt",
	"Answer",
	"DailyPayment",
	"Payment",
	"WalletTransaction",
	"Prize",
	"PrizeRedemption",
	"Winning",
	"SecurityEvent",
	"RateLimitHit",
	"StreamConfig",
]
