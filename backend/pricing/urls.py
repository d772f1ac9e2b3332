from django.urls import path

from .views import PricingListView, PricingDetailView

urlpatterns = [
    path('', PricingListView.as_view(), name='pricing-list'),
    path('<int:tier_id>/', PricingDetailView.as_view(), name='pricing-detail'),
]
