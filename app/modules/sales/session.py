# app/modules/sales/session.py
import uuid
from datetime import datetime
from typing import Dict, Optional

from .cart import CartAggregator
from .schemas import CheckoutState, CheckoutSessionResponse

class CheckoutSession:
    """
    Estado de una sesión de cobro: su carrito, el estado del cobro y el token
    que identifica la venta en curso (para no registrarla dos veces)
    """

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or uuid.uuid4().hex
        self.cart = CartAggregator()
        self.state = CheckoutState.draft
        self.checkout_token = uuid.uuid4().hex
        # True si el último cobro falló en el almacenamiento y no se sabe si llegó a escribirse
        self.outcome_unknown = False
        self.created_at = datetime.now()

    @property
    def is_busy(self) -> bool:
        return self.state in (CheckoutState.validating, CheckoutState.committing)

    def transition(self, state: CheckoutState):
        self.state = state

    def start_next_sale(self):
        """Tras un cobro exitoso: carrito vacío y token nuevo"""
        self.cart.clear()
        self.state = CheckoutState.draft
        self.checkout_token = uuid.uuid4().hex
        self.outcome_unknown = False

    def to_response(self) -> CheckoutSessionResponse:
        return CheckoutSessionResponse(
            session_id=self.session_id,
            state=self.state,
            lines=self.cart.lines,
            subtotal=self.cart.subtotal(),
            created_at=self.created_at
        )

class CheckoutSessionRegistry:
    """
    Sesiones de cobro en memoria del proceso. Se usa solo desde el event loop,
    por eso no necesita locks
    """

    def __init__(self):
        self._sessions: Dict[str, CheckoutSession] = {}

    def create(self) -> CheckoutSession:
        session = CheckoutSession()
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Optional[CheckoutSession]:
        return self._sessions.get(session_id)

    def discard(self, session_id: str) -> Optional[CheckoutSession]:
        return self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)

session_registry = CheckoutSessionRegistry()

def get_session_registry() -> CheckoutSessionRegistry:
    """Dependency para FastAPI"""
    return session_registry
