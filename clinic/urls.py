from django.urls import path
from .views import (
    AdviceApproveView,
    AdviceCreateView,
    AdviceRequestCreateView,
    AppointmentRequestCreateView,
    PatientAdviceView,
    PatientCollectionView,
    PatientDetailView,
    ReportCreateView,
    ReportDetailView,
)

urlpatterns = [
    path('patients/', PatientCollectionView.as_view(), name='patient-create'),
    path('patients/<str:reference>/', PatientDetailView.as_view(), name='patient-detail'),
    path('patient-reports/', ReportCreateView.as_view(), name='report-create'),
    path('patient-reports/<str:report_id>/', ReportDetailView.as_view(), name='report-detail'),
    path('advice/', AdviceCreateView.as_view(), name='advice-create'),
    path('advice/patient/', PatientAdviceView.as_view(), name='advice-patient'),
    path('advice/<uuid:advice_id>/approve/', AdviceApproveView.as_view(), name='advice-approve'),
    path('advice-requests/', AdviceRequestCreateView.as_view(), name='advice-request-create'),
    path('appointments/', AppointmentRequestCreateView.as_view(), name='appointment-create'),
]
