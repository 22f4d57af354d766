from .user_model import User
from .patient_model import Patient
from app.core.settings import CardPolicy
from app.core.sweep_log import CardSweepRun
