"""
URL configuration for the dumpster back office.
"""
from django.contrib import admin
from django.urls import path
from ninja import NinjaAPI

api = NinjaAPI(
    title="Dumpster Back Office API",
    version="1.0.0",
    description="Dumpster rentals, availability, invoices and payments",
    docs_url="/docs",
)

from apps.rentals.api import router as rentals_router
from apps.ledger.api import router as ledger_router

api.add_router("/rentals/", rentals_router)
api.add_router("/ledger/", ledger_router)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', api.urls),
]
