"""
Truck Queue — Request dependencies

The order service and notifier are built once in the app lifespan and kept
on app.state.
"""
from fastapi import Request

from truckqueue.orders.service import OrderService
from truckqueue.realtime.notifier import Notifier


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier
