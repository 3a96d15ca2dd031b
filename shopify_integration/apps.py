from django.apps import AppConfig


class ShopifyIntegrationConfig(AppConfig):
    name = "shopify_integration"
    verbose_name = "Shopify Integration"
    default_auto_field = "django.db.models.AutoField"

    def ready(self):
        # Import handler modules to trigger topic registration in router.
        import shopify_integration.handlers.app  # noqa: F401
        import shopify_integration.handlers.compliance  # noqa: F401
        import shopify_integration.handlers.customers  # noqa: F401
        import shopify_integration.handlers.inventory  # noqa: F401
        import shopify_integration.handlers.orders  # noqa: F401
        import shopify_integration.handlers.products  # noqa: F401
