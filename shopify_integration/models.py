import secrets
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.timezone import now

REDACTED_ADDRESS_FIELDS = (
    "city",
    "province",
    "province_code",
    "country",
    "country_code",
)


def redact_shipping_address(address):
    """Reduce a shipping address to the fields needed for geographic display.

    Only city, province, province code, country and country code survive;
    names, street lines, zip, phone and company are dropped.  Empty values
    are normalised to ``None``.
    """
    if address is None:
        return None
    return {field: address.get(field) or None for field in REDACTED_ADDRESS_FIELDS}


class Shop(models.Model):
    """A Shopify store that has installed the app. One record per domain."""

    shop_domain = models.CharField(max_length=255, unique=True)
    shopify_shop_id = models.BigIntegerField(null=True, blank=True)
    access_token = models.TextField()
    scope = models.TextField(blank=True, default="")
    shop_name = models.CharField(max_length=255, blank=True, default="")
    shop_email = models.CharField(max_length=255, blank=True, default="")
    currency = models.CharField(max_length=10, default="USD")
    timezone = models.CharField(max_length=64, blank=True, default="")
    is_active = models.BooleanField(default=True)
    installed_at = models.DateTimeField(default=now)
    uninstalled_at = models.DateTimeField(null=True, blank=True)
    last_sync_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "shopify_shop"

    def __str__(self):
        return f"{self.shop_domain} (active={self.is_active})"


class ShopUser(models.Model):
    """Links an application user to a shop they can access."""

    class Role(models.TextChoices):
        OWNER = "owner"
        ADMIN = "admin"
        MEMBER = "member"

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE)
    shop = models.ForeignKey(Shop, on_delete=models.CASCADE)
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.OWNER)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "shopify_shop_user"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "shop"], name="unique_shop_user"
            ),
        ]

    def __str__(self):
        return f"{self.user_id} -> {self.shop_id} ({self.role})"


class OAuthNegotiation(models.Model):
    """Single-use nonce issued when an OAuth install begins.

    The nonce is also carried in a signed cookie; the row exists so a
    callback URL cannot be replayed while that cookie is still valid.
    """

    nonce = models.CharField(max_length=64, unique=True)
    shop_domain = models.CharField(max_length=255)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField()
    consumed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "shopify_oauth_negotiation"

    def __str__(self):
        return f"{self.shop_domain} ({'consumed' if self.consumed_at else 'open'})"

    @classmethod
    def issue(cls, shop_domain, user=None, ttl_seconds=600):
        return cls.objects.create(
            nonce=secrets.token_urlsafe(32),
            shop_domain=shop_domain,
            user=user,
            expires_at=timezone.now() + timedelta(seconds=ttl_seconds),
        )

    @classmethod
    def consume(cls, nonce, shop_domain):
        """Mark the negotiation used. Returns False if unknown, expired or reused.

        A single conditional UPDATE, so two concurrent callbacks carrying
        the same nonce cannot both succeed.
        """
        now = timezone.now()
        updated = cls.objects.filter(
            nonce=nonce,
            shop_domain=shop_domain,
            consumed_at__isnull=True,
            expires_at__gt=now,
        ).update(consumed_at=now)
        return updated == 1

    @classmethod
    def prune(cls):
        """Delete consumed and expired negotiations. Returns rows deleted."""
        deleted, _ = cls.objects.filter(
            models.Q(consumed_at__isnull=False) | models.Q(expires_at__lte=timezone.now())
        ).delete()
        return deleted


class Product(models.Model):
    shop = models.ForeignKey(Shop, on_delete=models.CASCADE)
    shopify_product_id = models.BigIntegerField()
    title = models.TextField(blank=True, default="")
    description = models.TextField(blank=True, null=True)
    vendor = models.CharField(max_length=255, blank=True, null=True)
    product_type = models.CharField(max_length=255, blank=True, null=True)
    handle = models.CharField(max_length=255, blank=True, null=True)
    status = models.CharField(max_length=20, default="active")
    tags = models.JSONField(default=list, blank=True)
    images = models.JSONField(default=list, blank=True)
    options = models.JSONField(default=list, blank=True)
    variants = models.JSONField(default=list, blank=True)
    created_at_shopify = models.DateTimeField(null=True, blank=True)
    updated_at_shopify = models.DateTimeField(null=True, blank=True)
    synced_at = models.DateTimeField(default=now)

    class Meta:
        db_table = "shopify_product"
        constraints = [
            models.UniqueConstraint(
                fields=["shop", "shopify_product_id"], name="unique_shop_product"
            ),
        ]

    def __str__(self):
        return f"{self.title} ({self.shopify_product_id})"


class Customer(models.Model):
    """Customer mirror. PII fields are nulled once no retained order needs them."""

    PII_FIELDS = ("email", "first_name", "last_name", "phone", "default_address")

    shop = models.ForeignKey(Shop, on_delete=models.CASCADE)
    shopify_customer_id = models.BigIntegerField()
    email = models.CharField(max_length=255, null=True, blank=True)
    first_name = models.CharField(max_length=255, null=True, blank=True)
    last_name = models.CharField(max_length=255, null=True, blank=True)
    phone = models.CharField(max_length=64, null=True, blank=True)
    orders_count = models.IntegerField(default=0)
    total_spent = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    currency = models.CharField(max_length=10, null=True, blank=True)
    tags = models.JSONField(default=list, blank=True)
    accepts_marketing = models.BooleanField(default=False)
    default_address = models.JSONField(null=True, blank=True)
    addresses = models.JSONField(default=list, blank=True)
    created_at_shopify = models.DateTimeField(null=True, blank=True)
    updated_at_shopify = models.DateTimeField(null=True, blank=True)
    synced_at = models.DateTimeField(default=now)
    pii_redacted = models.BooleanField(default=False)

    class Meta:
        db_table = "shopify_customer"
        constraints = [
            models.UniqueConstraint(
                fields=["shop", "shopify_customer_id"], name="unique_shop_customer"
            ),
        ]

    def __str__(self):
        return f"customer {self.shopify_customer_id} (shop={self.shop_id})"

    @classmethod
    def redacted_values(cls):
        values = {field: None for field in cls.PII_FIELDS}
        values["addresses"] = []
        values["pii_redacted"] = True
        return values


class Order(models.Model):
    """Order mirror.

    PII (email, addresses, note, customer link) is only kept on the most
    recent orders of a shop; see ``services.redaction``.  Everything else is
    analytic data and is kept for the life of the shop.
    """

    shop = models.ForeignKey(Shop, on_delete=models.CASCADE)
    shopify_order_id = models.BigIntegerField()
    order_number = models.IntegerField(null=True, blank=True)
    name = models.CharField(max_length=64, blank=True, default="")
    email = models.CharField(max_length=255, null=True, blank=True)
    customer = models.ForeignKey(
        Customer, on_delete=models.SET_NULL, null=True, blank=True
    )
    shopify_customer_id = models.BigIntegerField(null=True, blank=True)
    financial_status = models.CharField(max_length=32, null=True, blank=True)
    fulfillment_status = models.CharField(max_length=32, null=True, blank=True)
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    subtotal_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_tax = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_discounts = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    currency = models.CharField(max_length=10, null=True, blank=True)
    line_items = models.JSONField(default=list, blank=True)
    shipping_address = models.JSONField(null=True, blank=True)
    billing_address = models.JSONField(null=True, blank=True)
    shipping_latitude = models.DecimalField(
        max_digits=10, decimal_places=7, null=True, blank=True
    )
    shipping_longitude = models.DecimalField(
        max_digits=10, decimal_places=7, null=True, blank=True
    )
    discount_codes = models.JSONField(default=list, blank=True)
    note = models.TextField(null=True, blank=True)
    tags = models.JSONField(default=list, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)
    created_at_shopify = models.DateTimeField(null=True, blank=True)
    updated_at_shopify = models.DateTimeField(null=True, blank=True)
    synced_at = models.DateTimeField(default=now)
    pii_redacted = models.BooleanField(default=False)

    class Meta:
        db_table = "shopify_order"
        constraints = [
            models.UniqueConstraint(
                fields=["shop", "shopify_order_id"], name="unique_shop_order"
            ),
        ]
        indexes = [
            models.Index(
                fields=["shop", "-created_at_shopify"], name="shopify_order_created_idx"
            ),
            models.Index(
                fields=["shop", "customer", "pii_redacted"],
                name="shopify_order_cust_pii_idx",
            ),
        ]

    def __str__(self):
        return f"{self.name or self.shopify_order_id} (shop={self.shop_id})"

    def redact_pii(self):
        """Scrub PII in place. Returns the list of fields changed."""
        self.email = None
        self.billing_address = None
        self.note = None
        self.shipping_address = redact_shipping_address(self.shipping_address)
        self.pii_redacted = True
        return ["email", "billing_address", "note", "shipping_address", "pii_redacted"]


class InventoryItem(models.Model):
    shop = models.ForeignKey(Shop, on_delete=models.CASCADE)
    shopify_inventory_item_id = models.BigIntegerField()
    shopify_variant_id = models.BigIntegerField(null=True, blank=True)
    sku = models.CharField(max_length=255, null=True, blank=True)
    synced_at = models.DateTimeField(default=now)

    class Meta:
        db_table = "shopify_inventory_item"
        constraints = [
            models.UniqueConstraint(
                fields=["shop", "shopify_inventory_item_id"],
                name="unique_shop_inventory_item",
            ),
        ]


class InventoryLevel(models.Model):
    shop = models.ForeignKey(Shop, on_delete=models.CASCADE)
    inventory_item = models.ForeignKey(
        InventoryItem, on_delete=models.CASCADE, null=True, blank=True
    )
    shopify_inventory_item_id = models.BigIntegerField()
    shopify_location_id = models.BigIntegerField()
    available = models.IntegerField(default=0)
    synced_at = models.DateTimeField(default=now)

    class Meta:
        db_table = "shopify_inventory_level"
        constraints = [
            models.UniqueConstraint(
                fields=["shop", "shopify_inventory_item_id", "shopify_location_id"],
                name="unique_shop_inventory_level",
            ),
        ]


class WebhookEvent(models.Model):
    """Delivery record. Every authenticated webhook is stored before dispatch."""

    class Status(models.TextChoices):
        RECEIVED = "received"
        PROCESSING = "processing"
        SUCCESS = "success"
        FAILED = "failed"
        IGNORED = "ignored"

    webhook_id = models.CharField(max_length=255, blank=True, default="")
    topic = models.CharField(max_length=100)
    shop_domain = models.CharField(max_length=255, db_index=True)
    shop = models.ForeignKey(Shop, on_delete=models.SET_NULL, null=True, blank=True)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.RECEIVED
    )
    payload = models.JSONField(null=True, blank=True)
    payload_hash = models.CharField(max_length=64)
    error_message = models.TextField(blank=True, default="")
    processing_time_ms = models.IntegerField(null=True, blank=True)
    attempts = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "shopify_webhook_event"
        indexes = [
            models.Index(fields=["webhook_id"], name="shopify_event_webhook_idx"),
            models.Index(
                fields=["shop_domain", "topic", "created_at"],
                name="shopify_event_shop_idx",
            ),
            models.Index(
                fields=["status", "created_at"], name="shopify_event_status_idx"
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["webhook_id"],
                condition=~models.Q(webhook_id=""),
                name="unique_webhook_id",
            ),
        ]

    def __str__(self):
        return f"{self.topic} [{self.status}] ({self.webhook_id})"

    @property
    def processed(self):
        return self.status == self.Status.SUCCESS


class ComplianceRecord(models.Model):
    """Audit trail for data-subject requests. Survives shop erasure."""

    shop_domain = models.CharField(max_length=255, db_index=True)
    topic = models.CharField(max_length=100)
    payload = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "shopify_compliance_record"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.topic} ({self.shop_domain})"
