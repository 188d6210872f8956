"""
Shared constants for SubRelay.
"""

# Plans derived from subscription status
PLAN_FREE = "free"
PLAN_PRO = "pro"

# Only an active subscription grants the paid plan (trialing stays free)
PRO_STATUSES = ("active",)

# Stripe event types the reconciler acts on
EVENT_SUBSCRIPTION_CREATED = "customer.subscription.created"
EVENT_SUBSCRIPTION_UPDATED = "customer.subscription.updated"
EVENT_SUBSCRIPTION_DELETED = "customer.subscription.deleted"

# Checkout
CHECKOUT_TRIAL_DAYS = 3
CHECKOUT_SUCCESS_PARAM = "success=true"
CHECKOUT_CANCEL_PARAM = "canceled=true"

# DynamoDB layout
USER_META_SK = "USER_META"
BILLING_CUSTOMER_INDEX = "billing-customer-index"

# Secrets cache
SECRETS_CACHE_TTL = 300  # 5 minutes

# Webhook signature timestamp tolerance (seconds)
WEBHOOK_TOLERANCE_SECONDS = 300
