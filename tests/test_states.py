from subscription.states import (
    CANCEL_REQUESTED,
    CHECKOUT_COMPLETED,
    SUBSCRIPTION_CREATED,
    SUBSCRIPTION_DELETED,
    SUBSCRIPTION_UPDATED,
    ProviderEvent,
    SubscriptionStatus,
    transition,
)


def test_new_subscription_becomes_active():
    assert transition(None, ProviderEvent(CHECKOUT_COMPLETED, "active")) == SubscriptionStatus.ACTIVE
    assert transition(None, ProviderEvent(SUBSCRIPTION_CREATED, "trialing")) == SubscriptionStatus.ACTIVE


def test_new_subscription_not_yet_paid_is_past_due():
    assert transition(None, ProviderEvent(SUBSCRIPTION_CREATED, "incomplete")) == SubscriptionStatus.PAST_DUE


def test_create_events_leave_existing_rows_alone():
    event = ProviderEvent(SUBSCRIPTION_CREATED, "active")
    assert transition(SubscriptionStatus.CANCELED, event) == SubscriptionStatus.CANCELED


def test_update_with_cancel_at_period_end_cancels():
    event = ProviderEvent(SUBSCRIPTION_UPDATED, "active", cancel_at_period_end=True)
    assert transition(SubscriptionStatus.ACTIVE, event) == SubscriptionStatus.CANCELED


def test_update_maps_provider_status():
    assert transition(SubscriptionStatus.ACTIVE, ProviderEvent(SUBSCRIPTION_UPDATED, "past_due")) == SubscriptionStatus.PAST_DUE
    assert transition(SubscriptionStatus.ACTIVE, ProviderEvent(SUBSCRIPTION_UPDATED, "unpaid")) == SubscriptionStatus.PAST_DUE
    assert transition(SubscriptionStatus.PAST_DUE, ProviderEvent(SUBSCRIPTION_UPDATED, "active")) == SubscriptionStatus.ACTIVE
    assert transition(SubscriptionStatus.ACTIVE, ProviderEvent(SUBSCRIPTION_UPDATED, "canceled")) == SubscriptionStatus.CANCELED


def test_reactivation_before_period_end():
    event = ProviderEvent(SUBSCRIPTION_UPDATED, "active", cancel_at_period_end=False)
    assert transition(SubscriptionStatus.CANCELED, event) == SubscriptionStatus.ACTIVE


def test_delete_and_local_cancel():
    assert transition(SubscriptionStatus.ACTIVE, ProviderEvent(SUBSCRIPTION_DELETED)) == SubscriptionStatus.CANCELED
    assert transition(SubscriptionStatus.PAST_DUE, ProviderEvent(CANCEL_REQUESTED)) == SubscriptionStatus.CANCELED


def test_unrelated_event_is_ignored():
    assert transition(SubscriptionStatus.ACTIVE, ProviderEvent("invoice.paid")) == SubscriptionStatus.ACTIVE
    assert transition(None, ProviderEvent("invoice.paid")) is None


def test_dead_or_paused_provider_statuses():
    assert transition(None, ProviderEvent(SUBSCRIPTION_CREATED, "incomplete_expired")) == SubscriptionStatus.CANCELED
    assert transition(SubscriptionStatus.PAST_DUE, ProviderEvent(SUBSCRIPTION_UPDATED, "incomplete_expired")) == SubscriptionStatus.CANCELED
    assert transition(None, ProviderEvent(CHECKOUT_COMPLETED, "paused")) == SubscriptionStatus.PAST_DUE
    assert transition(SubscriptionStatus.ACTIVE, ProviderEvent(SUBSCRIPTION_UPDATED, "paused")) == SubscriptionStatus.PAST_DUE
    assert transition(SubscriptionStatus.ACTIVE, ProviderEvent(SUBSCRIPTION_UPDATED, "incomplete")) == SubscriptionStatus.PAST_DUE
