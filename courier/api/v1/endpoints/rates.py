from datetime import date

from fastapi import APIRouter, Depends

from courier.api.deps import require_permissions
from courier.schemas.rate import RateQuoteRequest, RateQuoteResponse
from courier.services.booking_service import chargeable_weight_kg
from courier.services.rate_calculator import RateCalculator, expected_delivery


router = APIRouter(tags=["Rates"])


@router.post(
    "/calculate",
    response_model=RateQuoteResponse,
    dependencies=[Depends(require_permissions("booking:view"))]
)
async def calculate_rate(data: RateQuoteRequest):
    """
    Quote the charges for a shipment without booking it.
    Requires: booking:view permission
    """
    weight_kg = chargeable_weight_kg(data.weight, data.weight_unit)
    breakdown = RateCalculator().calculate(
        data.service_type,
        weight_kg,
        declared_value=data.declared_value,
        cod_amount=data.cod_amount,
        payment_mode=data.payment_mode.value if data.payment_mode else None,
    ).rounded()

    return RateQuoteResponse(
        service_type=data.service_type,
        weight_kg=float(weight_kg),
        base_rate=float(breakdown.base_rate),
        shipping=float(breakdown.shipping),
        insurance=float(breakdown.insurance),
        cod=float(breakdown.cod),
        fuel_surcharge=float(breakdown.fuel_surcharge),
        subtotal=float(breakdown.subtotal),
        gst=float(breakdown.gst),
        total=float(breakdown.total),
        expected_delivery=expected_delivery(data.service_type, date.today()),
    )
