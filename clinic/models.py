import uuid
from django.conf import settings
from django.db import models


ROLE_PATIENT = 'patient'
ROLE_PHYSICIAN = 'physician'
ROLE_ADMIN = 'admin'

STATUS_ACTIVE = 'active'
STATUS_INACTIVE = 'inactive'
STATUS_SUSPENDED = 'suspended'

ADVICE_PENDING = 'pending'
ADVICE_APPROVED = 'approved'


class Account(models.Model):
    """
    患者和员工共用一张表。

    id  是 canonical identifier（系统分配，UUID）。
    mrn 是给人看的 legacy identifier（PAT0001），只有患者有，创建后不可修改。
    """

    ROLE_CHOICES = [
        (ROLE_PATIENT, 'Patient'),
        (ROLE_PHYSICIAN, 'Physician'),
        (ROLE_ADMIN, 'Admin'),
    ]
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
        (STATUS_SUSPENDED, 'Suspended'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='clinic_account',
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_PATIENT)
    mrn = models.CharField(max_length=32, unique=True, null=True, blank=True)
    account_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    full_name = models.CharField(max_length=200)
    email = models.EmailField(blank=True, default='')
    phone = models.CharField(max_length=30, blank=True, default='')
    date_of_birth = models.DateField(blank=True, null=True)
    gender = models.CharField(max_length=20, blank=True, default='')
    address = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'accounts'

    def __str__(self):
        return f"{self.full_name} ({self.mrn or self.role})"

    @property
    def is_clinician(self):
        return self.role in (ROLE_PHYSICIAN, ROLE_ADMIN)


class ClinicalReport(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Account, on_delete=models.PROTECT, related_name='reports')
    author = models.ForeignKey(
        Account, on_delete=models.SET_NULL, null=True, blank=True, related_name='authored_reports'
    )
    diagnosis = models.TextField(blank=True, default='')
    treatment = models.TextField(blank=True, default='')
    prescription = models.TextField(blank=True, default='')
    follow_up_date = models.DateField(blank=True, null=True)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'clinical_reports'


class Advice(models.Model):
    URGENCY_CHOICES = [
        ('low', 'Low'),
        ('normal', 'Normal'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]
    STATUS_CHOICES = [
        (ADVICE_PENDING, 'Pending'),
        (ADVICE_APPROVED, 'Approved'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Account, on_delete=models.PROTECT, related_name='advice')
    author = models.ForeignKey(
        Account, on_delete=models.SET_NULL, null=True, blank=True, related_name='authored_advice'
    )
    condition = models.CharField(max_length=255)
    advice = models.TextField()
    medications = models.TextField()
    lifestyle = models.TextField(blank=True, default='')
    urgency_level = models.CharField(max_length=20, choices=URGENCY_CHOICES, default='normal')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=ADVICE_PENDING)
    approved_by = models.ForeignKey(
        Account, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_advice'
    )
    approved_at = models.DateTimeField(blank=True, null=True)
    annotation = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'advice'


class AdviceRequest(models.Model):
    """患者发起的咨询请求。一次性记录，没有 status，医生看到后另建 Advice。"""

    URGENCY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('emergency', 'Emergency'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Account, on_delete=models.PROTECT, related_name='advice_requests')
    subject = models.CharField(max_length=200)
    description = models.TextField()
    urgency = models.CharField(max_length=20, choices=URGENCY_CHOICES, default='medium')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'advice_requests'


class AppointmentRequest(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Account, on_delete=models.PROTECT, related_name='appointment_requests')
    physician = models.ForeignKey(
        Account, on_delete=models.SET_NULL, null=True, blank=True, related_name='requested_appointments'
    )
    department = models.CharField(max_length=100)
    date = models.DateField()
    time = models.TimeField()
    reason = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'appointment_requests'
