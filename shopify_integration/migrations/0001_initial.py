# Generated manually for shopify_integration app

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Shop",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("shop_domain", models.CharField(max_length=255, unique=True)),
                ("shopify_shop_id", models.BigIntegerField(blank=True, null=True)),
                ("access_token", models.TextField()),
                ("scope", models.TextField(blank=True, default="")),
                ("shop_name", models.CharField(blank=True, default="", max_length=255)),
                ("shop_email", models.CharField(blank=True, default="", max_length=255)),
                ("currency", models.CharField(default="USD", max_length=10)),
                ("timezone", models.CharField(blank=True, default="", max_length=64)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "installed_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("uninstalled_at", models.DateTimeField(blank=True, null=True)),
                ("last_sync_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "shopify_shop",
            },
        ),
        migrations.CreateModel(
            name="ShopUser",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("owner", "Owner"),
                            ("admin", "Admin"),
                            ("member", "Member"),
                        ],
                        default="owner",
                        max_length=10,
                    ),
                ),
                ("is_default", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="shopify_integration.shop",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "shopify_shop_user",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "shop"), name="unique_shop_user"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OAuthNegotiation",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("nonce", models.CharField(max_length=64, unique=True)),
                ("shop_domain", models.CharField(max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("expires_at", models.DateTimeField()),
                ("consumed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "shopify_oauth_negotiation",
            },
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("shopify_product_id", models.BigIntegerField()),
                ("title", models.TextField(blank=True, default="")),
                ("description", models.TextField(blank=True, null=True)),
                ("vendor", models.CharField(blank=True, max_length=255, null=True)),
                ("product_type", models.CharField(blank=True, max_length=255, null=True)),
                ("handle", models.CharField(blank=True, max_length=255, null=True)),
                ("status", models.CharField(default="active", max_length=20)),
                ("tags", models.JSONField(blank=True, default=list)),
                ("images", models.JSONField(blank=True, default=list)),
                ("options", models.JSONField(blank=True, default=list)),
                ("variants", models.JSONField(blank=True, default=list)),
                ("created_at_shopify", models.DateTimeField(blank=True, null=True)),
                ("updated_at_shopify", models.DateTimeField(blank=True, null=True)),
                ("synced_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="shopify_integration.shop",
                    ),
                ),
            ],
            options={
                "db_table": "shopify_product",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("shop", "shopify_product_id"),
                        name="unique_shop_product",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("shopify_customer_id", models.BigIntegerField()),
                ("email", models.CharField(blank=True, max_length=255, null=True)),
                ("first_name", models.CharField(blank=True, max_length=255, null=True)),
                ("last_name", models.CharField(blank=True, max_length=255, null=True)),
                ("phone", models.CharField(blank=True, max_length=64, null=True)),
                ("orders_count", models.IntegerField(default=0)),
                (
                    "total_spent",
                    models.DecimalField(decimal_places=2, default=0, max_digits=12),
                ),
                ("currency", models.CharField(blank=True, max_length=10, null=True)),
                ("tags", models.JSONField(blank=True, default=list)),
                ("accepts_marketing", models.BooleanField(default=False)),
                ("default_address", models.JSONField(blank=True, null=True)),
                ("addresses", models.JSONField(blank=True, default=list)),
                ("created_at_shopify", models.DateTimeField(blank=True, null=True)),
                ("updated_at_shopify", models.DateTimeField(blank=True, null=True)),
                ("synced_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("pii_redacted", models.BooleanField(default=False)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="shopify_integration.shop",
                    ),
                ),
            ],
            options={
                "db_table": "shopify_customer",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("shop", "shopify_customer_id"),
                        name="unique_shop_customer",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("shopify_order_id", models.BigIntegerField()),
                ("order_number", models.IntegerField(blank=True, null=True)),
                ("name", models.CharField(blank=True, default="", max_length=64)),
                ("email", models.CharField(blank=True, max_length=255, null=True)),
                ("shopify_customer_id", models.BigIntegerField(blank=True, null=True)),
                ("financial_status", models.CharField(blank=True, max_length=32, null=True)),
                ("fulfillment_status", models.CharField(blank=True, max_length=32, null=True)),
                (
                    "total_price",
                    models.DecimalField(decimal_places=2, default=0, max_digits=12),
                ),
                (
                    "subtotal_price",
                    models.DecimalField(decimal_places=2, default=0, max_digits=12),
                ),
                (
                    "total_tax",
                    models.DecimalField(decimal_places=2, default=0, max_digits=12),
                ),
                (
                    "total_discounts",
                    models.DecimalField(decimal_places=2, default=0, max_digits=12),
                ),
                ("currency", models.CharField(blank=True, max_length=10, null=True)),
                ("line_items", models.JSONField(blank=True, default=list)),
                ("shipping_address", models.JSONField(blank=True, null=True)),
                ("billing_address", models.JSONField(blank=True, null=True)),
                (
                    "shipping_latitude",
                    models.DecimalField(
                        blank=True, decimal_places=7, max_digits=10, null=True
                    ),
                ),
                (
                    "shipping_longitude",
                    models.DecimalField(
                        blank=True, decimal_places=7, max_digits=10, null=True
                    ),
                ),
                ("discount_codes", models.JSONField(blank=True, default=list)),
                ("note", models.TextField(blank=True, null=True)),
                ("tags", models.JSONField(blank=True, default=list)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at_shopify", models.DateTimeField(blank=True, null=True)),
                ("updated_at_shopify", models.DateTimeField(blank=True, null=True)),
                ("synced_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("pii_redacted", models.BooleanField(default=False)),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to="shopify_integration.customer",
                    ),
                ),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="shopify_integration.shop",
                    ),
                ),
            ],
            options={
                "db_table": "shopify_order",
                "indexes": [
                    models.Index(
                        fields=["shop", "-created_at_shopify"],
                        name="shopify_order_created_idx",
                    ),
                    models.Index(
                        fields=["shop", "customer", "pii_redacted"],
                        name="shopify_order_cust_pii_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("shop", "shopify_order_id"),
                        name="unique_shop_order",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryItem",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("shopify_inventory_item_id", models.BigIntegerField()),
                ("shopify_variant_id", models.BigIntegerField(blank=True, null=True)),
                ("sku", models.CharField(blank=True, max_length=255, null=True)),
                ("synced_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="shopify_integration.shop",
                    ),
                ),
            ],
            options={
                "db_table": "shopify_inventory_item",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("shop", "shopify_inventory_item_id"),
                        name="unique_shop_inventory_item",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryLevel",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("shopify_inventory_item_id", models.BigIntegerField()),
                ("shopify_location_id", models.BigIntegerField()),
                ("available", models.IntegerField(default=0)),
                ("synced_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "inventory_item",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        to="shopify_integration.inventoryitem",
                    ),
                ),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="shopify_integration.shop",
                    ),
                ),
            ],
            options={
                "db_table": "shopify_inventory_level",
                "constraints": [
                    models.UniqueConstraint(
                        fields=(
                            "shop",
                            "shopify_inventory_item_id",
                            "shopify_location_id",
                        ),
                        name="unique_shop_inventory_level",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("webhook_id", models.CharField(blank=True, default="", max_length=255)),
                ("topic", models.CharField(max_length=100)),
                ("shop_domain", models.CharField(db_index=True, max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("received", "Received"),
                            ("processing", "Processing"),
                            ("success", "Success"),
                            ("failed", "Failed"),
                            ("ignored", "Ignored"),
                        ],
                        default="received",
                        max_length=20,
                    ),
                ),
                ("payload", models.JSONField(blank=True, null=True)),
                ("payload_hash", models.CharField(max_length=64)),
                ("error_message", models.TextField(blank=True, default="")),
                ("processing_time_ms", models.IntegerField(blank=True, null=True)),
                ("attempts", models.IntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "shop",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to="shopify_integration.shop",
                    ),
                ),
            ],
            options={
                "db_table": "shopify_webhook_event",
                "indexes": [
                    models.Index(
                        fields=["webhook_id"],
                        name="shopify_event_webhook_idx",
                    ),
                    models.Index(
                        fields=["shop_domain", "topic", "created_at"],
                        name="shopify_event_shop_idx",
                    ),
                    models.Index(
                        fields=["status", "created_at"],
                        name="shopify_event_status_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("webhook_id", ""), _negated=True),
                        fields=("webhook_id",),
                        name="unique_webhook_id",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ComplianceRecord",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("shop_domain", models.CharField(db_index=True, max_length=255)),
                ("topic", models.CharField(max_length=100)),
                ("payload", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "shopify_compliance_record",
                "ordering": ["-created_at"],
            },
        ),
    ]
