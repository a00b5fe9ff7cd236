from flask import Blueprint

from ...services import stock_alerts
from ...utils.api_responses import APIResponse

stock_api_bp = Blueprint('stock_api', __name__, url_prefix='/stock')


@stock_api_bp.route('/alerts', methods=['GET'])
def get_stock_alerts():
    alerts = stock_alerts()
    return APIResponse.success({
        'alerts': [alert.to_dict() for alert in alerts],
        'count': len(alerts),
    })
