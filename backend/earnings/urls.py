from django.urls import path

from .views import CommissionView

urlpatterns = [
    path('commission/', CommissionView.as_view(), name='commission'),
]
