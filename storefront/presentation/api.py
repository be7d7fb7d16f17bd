from typing import List
from fastapi import APIRouter, Depends, status

from storefront.presentation.dependencies import get_current_actor, get_payment_dispatcher, get_unit_of_work
from storefront.presentation.schemas import (
    CreateOrderRequest, CreateOrderResponse, CreateProductRequest, CreatePromotionRequest, CreateShippingZoneRequest,
    ErrorResponse, EstimateShippingRequest, InitiatePaymentRequest, MessageResponse, OrderResponse,
    PaymentHandleResponse, PaymentMethodResponse, PaymentResponse, ProductResponse, PromotionResponse, ReturnRequest,
    ReturnResponse, ShippingEstimateResponse, ShippingZoneResponse, UpdatePromotionRequest, UpdateReturnStatusRequest,
    UpdateStatusRequest, ValidatePromoRequest, ValidatePromoResponse, VerifyPaymentRequest
)
from storefront.application.cancel_order import CancelOrderUseCase
from storefront.application.catalog import (
    CreateProductDTO, CreateProductUseCase, CreateShippingZoneDTO, CreateShippingZoneUseCase, GetProductUseCase
)
from storefront.application.create_order import CreateOrderDTO, CreateOrderUseCase
from storefront.application.get_order import GetOrderUseCase, ListOrdersUseCase
from storefront.application.payments import (
    GetPaymentUseCase, InitiatePaymentUseCase, PaymentDispatcher, VerifyPaymentUseCase
)
from storefront.application.pricing import LineRequest
from storefront.application.promotions import (
    CreatePromotionDTO, CreatePromotionUseCase, DeletePromotionUseCase, GetPromotionUseCase, UpdatePromotionDTO,
    UpdatePromotionUseCase, ValidatePromoCodeUseCase
)
from storefront.application.returns import RequestReturnUseCase, ReturnRequestDTO, UpdateReturnStatusUseCase
from storefront.application.shipping import EstimateShippingUseCase
from storefront.application.update_status import UpdateOrderStatusUseCase, UpdateStatusDTO
from storefront.domain.roles import Actor

router = APIRouter()

ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


# Use case factories
def get_create_order_use_case(
    uow=Depends(get_unit_of_work), dispatcher: PaymentDispatcher = Depends(get_payment_dispatcher)
):
    return CreateOrderUseCase(uow, dispatcher)


def get_get_order_use_case(uow=Depends(get_unit_of_work)):
    return GetOrderUseCase(uow)


def get_list_orders_use_case(uow=Depends(get_unit_of_work)):
    return ListOrdersUseCase(uow)


def get_update_status_use_case(uow=Depends(get_unit_of_work)):
    return UpdateOrderStatusUseCase(uow)


def get_cancel_order_use_case(uow=Depends(get_unit_of_work)):
    return CancelOrderUseCase(uow)


def get_request_return_use_case(uow=Depends(get_unit_of_work)):
    return RequestReturnUseCase(uow)


def get_update_return_status_use_case(uow=Depends(get_unit_of_work)):
    return UpdateReturnStatusUseCase(uow)


def get_initiate_payment_use_case(
    uow=Depends(get_unit_of_work), dispatcher: PaymentDispatcher = Depends(get_payment_dispatcher)
):
    return InitiatePaymentUseCase(uow, dispatcher)


def get_verify_payment_use_case(
    uow=Depends(get_unit_of_work), dispatcher: PaymentDispatcher = Depends(get_payment_dispatcher)
):
    return VerifyPaymentUseCase(uow, dispatcher)


def get_get_payment_use_case(uow=Depends(get_unit_of_work)):
    return GetPaymentUseCase(uow)


def get_create_promotion_use_case(uow=Depends(get_unit_of_work)):
    return CreatePromotionUseCase(uow)


def get_get_promotion_use_case(uow=Depends(get_unit_of_work)):
    return GetPromotionUseCase(uow)


def get_update_promotion_use_case(uow=Depends(get_unit_of_work)):
    return UpdatePromotionUseCase(uow)


def get_delete_promotion_use_case(uow=Depends(get_unit_of_work)):
    return DeletePromotionUseCase(uow)


def get_validate_promo_use_case(uow=Depends(get_unit_of_work)):
    return ValidatePromoCodeUseCase(uow)


def get_estimate_shipping_use_case(uow=Depends(get_unit_of_work)):
    return EstimateShippingUseCase(uow)


def get_create_product_use_case(uow=Depends(get_unit_of_work)):
    return CreateProductUseCase(uow)


def get_get_product_use_case(uow=Depends(get_unit_of_work)):
    return GetProductUseCase(uow)


def get_create_shipping_zone_use_case(uow=Depends(get_unit_of_work)):
    return CreateShippingZoneUseCase(uow)


# Orders

@router.post(
    "/orders",
    response_model=CreateOrderResponse,
    responses=ERRORS,
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    actor: Actor = Depends(get_current_actor),
    use_case: CreateOrderUseCase = Depends(get_create_order_use_case)
):
    """Place an order: price it, reserve stock and start payment"""
    dto = CreateOrderDTO(
        order_items=[LineRequest(product_id=line.product_id, quantity=line.quantity) for line in request.order_items],
        shipping_address=request.shipping_address,
        billing_address=request.billing_address or request.shipping_address,
        payment_method=request.payment_method,
        promo_code=request.promo_code
    )
    placed = await use_case(dto, actor)
    return CreateOrderResponse(
        order=OrderResponse.from_domain(placed.order),
        payment=PaymentHandleResponse(**placed.payment.model_dump())
    )


@router.get("/orders", response_model=List[OrderResponse], responses=ERRORS)
async def list_orders(
    actor: Actor = Depends(get_current_actor),
    use_case: ListOrdersUseCase = Depends(get_list_orders_use_case)
):
    """The caller's orders, newest first"""
    orders = await use_case(actor)
    return [OrderResponse.from_domain(order) for order in orders]


@router.get("/orders/{order_id}", response_model=OrderResponse, responses=ERRORS)
async def get_order(
    order_id: str,
    actor: Actor = Depends(get_current_actor),
    use_case: GetOrderUseCase = Depends(get_get_order_use_case)
):
    order = await use_case(order_id, actor)
    return OrderResponse.from_domain(order)


@router.put("/orders/{order_id}/status", response_model=OrderResponse, responses=ERRORS)
async def update_order_status(
    order_id: str,
    request: UpdateStatusRequest,
    actor: Actor = Depends(get_current_actor),
    use_case: UpdateOrderStatusUseCase = Depends(get_update_status_use_case)
):
    dto = UpdateStatusDTO(**request.model_dump())
    order = await use_case(order_id, dto, actor)
    return OrderResponse.from_domain(order)


@router.put("/orders/{order_id}/cancel", response_model=OrderResponse, responses=ERRORS)
async def cancel_order(
    order_id: str,
    actor: Actor = Depends(get_current_actor),
    use_case: CancelOrderUseCase = Depends(get_cancel_order_use_case)
):
    order = await use_case(order_id, actor)
    return OrderResponse.from_domain(order)


@router.post(
    "/orders/{order_id}/return",
    response_model=ReturnResponse,
    responses=ERRORS,
    status_code=status.HTTP_201_CREATED
)
async def request_return(
    order_id: str,
    request: ReturnRequest,
    actor: Actor = Depends(get_current_actor),
    use_case: RequestReturnUseCase = Depends(get_request_return_use_case)
):
    return_request = await use_case(order_id, ReturnRequestDTO(**request.model_dump()), actor)
    return ReturnResponse(**return_request.model_dump())


@router.put("/returns/{return_id}/status", response_model=ReturnResponse, responses=ERRORS)
async def update_return_status(
    return_id: str,
    request: UpdateReturnStatusRequest,
    actor: Actor = Depends(get_current_actor),
    use_case: UpdateReturnStatusUseCase = Depends(get_update_return_status_use_case)
):
    return_request = await use_case(return_id, request.return_status, actor)
    return ReturnResponse(**return_request.model_dump())


# Payments

@router.get("/payments/methods", response_model=List[PaymentMethodResponse], responses=ERRORS)
async def list_payment_methods(
    actor: Actor = Depends(get_current_actor),
    dispatcher: PaymentDispatcher = Depends(get_payment_dispatcher)
):
    return [PaymentMethodResponse(**method.model_dump()) for method in dispatcher.available_methods()]


@router.post("/payments/initiate", response_model=PaymentHandleResponse, responses=ERRORS)
async def initiate_payment(
    request: InitiatePaymentRequest,
    actor: Actor = Depends(get_current_actor),
    use_case: InitiatePaymentUseCase = Depends(get_initiate_payment_use_case)
):
    handle = await use_case(request.order_id, actor)
    return PaymentHandleResponse(**handle.model_dump())


@router.post("/payments/verify", response_model=PaymentResponse, responses=ERRORS)
async def verify_payment(
    request: VerifyPaymentRequest,
    actor: Actor = Depends(get_current_actor),
    use_case: VerifyPaymentUseCase = Depends(get_verify_payment_use_case)
):
    payment = await use_case(request.order_id, actor, request.payment_data)
    return PaymentResponse(**payment.model_dump())


@router.get("/payments/{payment_id}", response_model=PaymentResponse, responses=ERRORS)
async def get_payment(
    payment_id: str,
    actor: Actor = Depends(get_current_actor),
    use_case: GetPaymentUseCase = Depends(get_get_payment_use_case)
):
    payment = await use_case(payment_id, actor)
    return PaymentResponse(**payment.model_dump())


# Promotions and shipping

@router.post(
    "/promos",
    response_model=PromotionResponse,
    responses={**ERRORS, 409: {"model": ErrorResponse}},
    status_code=status.HTTP_201_CREATED
)
async def create_promotion(
    request: CreatePromotionRequest,
    actor: Actor = Depends(get_current_actor),
    use_case: CreatePromotionUseCase = Depends(get_create_promotion_use_case)
):
    promotion = await use_case(CreatePromotionDTO(**request.model_dump()), actor)
    return PromotionResponse(**promotion.model_dump())


@router.post("/promos/validate", response_model=ValidatePromoResponse, responses=ERRORS)
async def validate_promo(
    request: ValidatePromoRequest,
    use_case: ValidatePromoCodeUseCase = Depends(get_validate_promo_use_case)
):
    result = await use_case(request.code, request.order_amount)
    return ValidatePromoResponse(
        code=result.promotion.code,
        discount_type=result.promotion.discount_type,
        discount_value=result.promotion.discount_value,
        discount=result.discount
    )


@router.get("/promos/{promotion_id}", response_model=PromotionResponse, responses=ERRORS)
async def get_promotion(
    promotion_id: str,
    actor: Actor = Depends(get_current_actor),
    use_case: GetPromotionUseCase = Depends(get_get_promotion_use_case)
):
    promotion = await use_case(promotion_id, actor)
    return PromotionResponse(**promotion.model_dump())


@router.put(
    "/promos/{promotion_id}",
    response_model=PromotionResponse,
    responses={**ERRORS, 409: {"model": ErrorResponse}}
)
async def update_promotion(
    promotion_id: str,
    request: UpdatePromotionRequest,
    actor: Actor = Depends(get_current_actor),
    use_case: UpdatePromotionUseCase = Depends(get_update_promotion_use_case)
):
    dto = UpdatePromotionDTO(**request.model_dump(exclude_unset=True))
    promotion = await use_case(promotion_id, dto, actor)
    return PromotionResponse(**promotion.model_dump())


@router.delete("/promos/{promotion_id}", response_model=MessageResponse, responses=ERRORS)
async def delete_promotion(
    promotion_id: str,
    actor: Actor = Depends(get_current_actor),
    use_case: DeletePromotionUseCase = Depends(get_delete_promotion_use_case)
):
    await use_case(promotion_id, actor)
    return MessageResponse(message="Promo code deleted successfully")

@router.post("/shipping/estimate", response_model=ShippingEstimateResponse, responses=ERRORS)
async def estimate_shipping(
    request: EstimateShippingRequest,
    use_case: EstimateShippingUseCase = Depends(get_estimate_shipping_use_case)
):
    quote = await use_case(request.shipping_address, [(line.product_id, line.quantity) for line in request.items])
    return ShippingEstimateResponse(
        shipping_cost=quote.cost,
        estimated_days=quote.estimated_days,
        couriers=quote.couriers
    )


# Catalog

@router.post(
    "/products",
    response_model=ProductResponse,
    responses=ERRORS,
    status_code=status.HTTP_201_CREATED
)
async def create_product(
    request: CreateProductRequest,
    actor: Actor = Depends(get_current_actor),
    use_case: CreateProductUseCase = Depends(get_create_product_use_case)
):
    product = await use_case(CreateProductDTO(**request.model_dump()), actor)
    return ProductResponse(**product.model_dump())


@router.get("/products/{product_id}", response_model=ProductResponse, responses=ERRORS)
async def get_product(
    product_id: str,
    use_case: GetProductUseCase = Depends(get_get_product_use_case)
):
    product = await use_case(product_id)
    return ProductResponse(**product.model_dump())


@router.post(
    "/shipping-zones",
    response_model=ShippingZoneResponse,
    responses=ERRORS,
    status_code=status.HTTP_201_CREATED
)
async def create_shipping_zone(
    request: CreateShippingZoneRequest,
    actor: Actor = Depends(get_current_actor),
    use_case: CreateShippingZoneUseCase = Depends(get_create_shipping_zone_use_case)
):
    zone = await use_case(CreateShippingZoneDTO(**request.model_dump()), actor)
    return ShippingZoneResponse(**zone.model_dump())
