"""
Webhook handling for payment events from Stripe.

Notifications are authenticated and typed (ingress), stored in the inbox,
and processed asynchronously via Celery (payments.tasks), which runs the
idempotency guard and dispatches to the handlers.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""
