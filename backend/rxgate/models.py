from django.db import models


class CatalogItem(models.Model):
    """
    A medication or a diagnostic service.

    kind decides which ProviderOffer field matters: medications are stocked
    (offer.stock), services are scheduled (offer.available).
    """

    class Kind(models.TextChoices):
        MEDICATION = 'medication', 'Medication'
        SERVICE = 'service', 'Service'

    kind = models.CharField(max_length=20, choices=Kind.choices, default=Kind.MEDICATION)
    name = models.CharField(max_length=200)
    generic_name = models.CharField(max_length=200, blank=True, default='')
    form = models.CharField(max_length=50, blank=True, default='')
    strength = models.CharField(max_length=50, blank=True, default='')
    test_type = models.CharField(max_length=100, blank=True, default='')
    prescription_required = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'catalog_items'

    @property
    def is_stockable(self):
        return self.kind == self.Kind.MEDICATION

    def display_name(self):
        if self.kind == self.Kind.SERVICE:
            return f"{self.name} ({self.test_type})" if self.test_type else self.name
        parts = [self.name]
        if self.strength:
            parts.append(self.strength)
        if self.form:
            parts.append(f"({self.form})")
        name = ' '.join(parts)
        return f"{name} [{self.generic_name}]" if self.generic_name else name


class Provider(models.Model):
    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        VERIFIED = 'verified', 'Verified'
        SUSPENDED = 'suspended', 'Suspended'
        REJECTED = 'rejected', 'Rejected'
        CLOSED = 'closed', 'Closed'

    name = models.CharField(max_length=200)
    address = models.CharField(max_length=300)
    phone = models.CharField(max_length=20, blank=True, default='')
    license_number = models.CharField(max_length=50, blank=True, default='')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    is_active = models.BooleanField(default=True)
    state = models.CharField(max_length=100)
    lga = models.CharField(max_length=100)
    ward = models.CharField(max_length=100, blank=True, default='')
    operating_hours = models.CharField(max_length=200, blank=True, default='')
    latitude = models.FloatField(blank=True, null=True)
    longitude = models.FloatField(blank=True, null=True)
    home_collection_available = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'providers'
        indexes = [
            models.Index(fields=['latitude', 'longitude'], name='providers_lat_lng_idx'),
        ]


class ProviderOffer(models.Model):
    provider = models.ForeignKey(Provider, on_delete=models.CASCADE, related_name='offers')
    catalog_item = models.ForeignKey(CatalogItem, on_delete=models.CASCADE, related_name='offers')
    stock = models.IntegerField(blank=True, null=True)
    available = models.BooleanField(default=True)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    expiry_date = models.DateField(blank=True, null=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'provider_offers'
        constraints = [
            models.UniqueConstraint(fields=['provider', 'catalog_item'], name='uniq_offer_provider_item'),
            models.CheckConstraint(
                condition=models.Q(stock__isnull=True) | models.Q(stock__gte=0),
                name='offer_stock_non_negative',
            ),
        ]


class Prescription(models.Model):
    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        VERIFIED = 'verified', 'Verified'
        REJECTED = 'rejected', 'Rejected'
        EXPIRED = 'expired', 'Expired'

    patient_identifier = models.CharField(max_length=100, db_index=True)
    email = models.EmailField(blank=True, null=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    file_url = models.CharField(max_length=500)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    verified = models.BooleanField(default=False)
    rejection_reason = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'prescriptions'
        indexes = [
            models.Index(fields=['patient_identifier', 'status', '-created_at'], name='rx_patient_status_idx'),
        ]

    @property
    def is_pending(self):
        return self.status == self.Status.PENDING


class PrescriptionLineItem(models.Model):
    prescription = models.ForeignKey(Prescription, on_delete=models.PROTECT, related_name='line_items')
    catalog_item = models.ForeignKey(CatalogItem, on_delete=models.PROTECT, related_name='+')
    quantity = models.PositiveIntegerField(default=1)
    instructions = models.TextField(blank=True, null=True)

    class Meta:
        db_table = 'prescription_line_items'
        ordering = ['id']
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gte=1), name='line_item_quantity_positive'),
        ]


class Order(models.Model):
    class Status(models.TextChoices):
        CART = 'cart', 'Cart'
        PENDING = 'pending', 'Pending'
        PENDING_PRESCRIPTION = 'pending_prescription', 'Pending prescription'
        CONFIRMED = 'confirmed', 'Confirmed'
        PROCESSING = 'processing', 'Processing'
        SHIPPED = 'shipped', 'Shipped'
        DELIVERED = 'delivered', 'Delivered'
        READY_FOR_PICKUP = 'ready_for_pickup', 'Ready for pickup'
        SAMPLE_COLLECTED = 'sample_collected', 'Sample collected'
        RESULT_READY = 'result_ready', 'Result ready'
        COMPLETED = 'completed', 'Completed'
        CANCELLED = 'cancelled', 'Cancelled'

    class PaymentStatus(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PAID = 'paid', 'Paid'
        FAILED = 'failed', 'Failed'
        CANCELLED = 'cancelled', 'Cancelled'
        REFUNDED = 'refunded', 'Refunded'

    # Orders still waiting on a prescription decision; anything else has moved on.
    AWAITING_REVIEW = (Status.CART, Status.PENDING, Status.PENDING_PRESCRIPTION)

    patient_identifier = models.CharField(max_length=100, db_index=True)
    provider = models.ForeignKey(Provider, on_delete=models.PROTECT, blank=True, null=True, related_name='orders')
    prescription = models.ForeignKey(
        Prescription, on_delete=models.PROTECT, blank=True, null=True, related_name='orders',
    )
    status = models.CharField(max_length=30, choices=Status.choices, default=Status.CART)
    payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    email = models.EmailField(blank=True, null=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    cancel_reason = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'orders'


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    offer = models.ForeignKey(ProviderOffer, on_delete=models.PROTECT, related_name='order_items')
    quantity = models.PositiveIntegerField(default=1)
    # units currently held against offer.stock
    reserved_quantity = models.PositiveIntegerField(default=0)
    price = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        db_table = 'order_items'
        ordering = ['id']
