from .adapters import (
    AdviceIntake,
    AdviceRequestIntake,
    AppointmentRequestIntake,
    PatientIntake,
    ReportIntake,
)

__all__ = [
    "AdviceIntake",
    "AdviceRequestIntake",
    "AppointmentRequestIntake",
    "PatientIntake",
    "ReportIntake",
]
