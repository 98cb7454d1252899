import logging

from flask import Blueprint

from ...services.errors import StockLedgerError
from ...utils.api_responses import APIResponse

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__, url_prefix='/api')


@api_bp.errorhandler(StockLedgerError)
def handle_ledger_error(error: StockLedgerError):
    """Map ledger errors onto the response envelope with their HTTP status."""
    if error.status_code >= 409:
        logger.warning(f"Ledger operation rejected: {error.message}")
    return APIResponse.error(error.message, errors=error.to_dict(), status_code=error.status_code)


# Import all route modules to register them
from . import ingredient_routes  # noqa: E402,F401
from . import product_routes  # noqa: E402,F401
from . import sale_routes  # noqa: E402,F401
from . import stock_routes  # noqa: E402,F401
