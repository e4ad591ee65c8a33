from django.urls import path

from .views import (
    CatalogAvailabilityView,
    PrescriptionAvailabilityView,
    PrescriptionItemsView,
    PrescriptionOrderLinkView,
    PrescriptionStatusView,
    PrescriptionUploadView,
    PrescriptionVerifyView,
)

urlpatterns = [
    path('prescriptions/', PrescriptionUploadView.as_view(), name='prescription-upload'),
    path('prescriptions/status/', PrescriptionStatusView.as_view(), name='prescription-status'),
    path('prescriptions/availability/', PrescriptionAvailabilityView.as_view(), name='prescription-availability'),
    path('prescriptions/<int:prescription_id>/items/', PrescriptionItemsView.as_view(), name='prescription-items'),
    path('prescriptions/<int:prescription_id>/orders/', PrescriptionOrderLinkView.as_view(), name='prescription-orders'),
    path('prescriptions/<int:prescription_id>/verify/', PrescriptionVerifyView.as_view(), name='prescription-verify'),
    path('catalog/<int:catalog_item_id>/availability/', CatalogAvailabilityView.as_view(), name='catalog-availability'),
]
