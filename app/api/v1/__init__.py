from fastapi import APIRouter
from .user.user_routes import router as user_router
from .patient.patient_routes import router as patient_router
from .settings.card_policy import router as card_policy_router
from .admin.card_sweep_api import router as card_sweep_router

router = APIRouter()


router.include_router(user_router)
router.include_router(patient_router)
router.include_router(card_policy_router)
router.include_router(card_sweep_router)
