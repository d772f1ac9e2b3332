from django.urls import path
from . import views

app_name = 'bookings'

urlpatterns = [
    path('', views.bookings_collection, name='bookings'),
    path('estimate/', views.estimate, name='estimate'),
    path('vehicle/types/', views.vehicle_types, name='vehicle-types'),
    path('nearby/pending/', views.pending_nearby, name='nearby-pending'),

    path('<int:booking_id>/', views.booking_detail, name='booking-detail'),
    path('<int:booking_id>/lifecycle/', views.lifecycle, name='lifecycle'),
    path('<int:booking_id>/assign/', views.assign, name='assign'),
    path('<int:booking_id>/rate-passenger/', views.rate_passenger_view, name='rate-passenger'),
    path('<int:booking_id>/rate-driver/', views.rate_driver_view, name='rate-driver'),
    path('<int:booking_id>/history/', views.history, name='history'),
]
