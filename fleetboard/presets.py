"""
Dashboard presets.

Each preset bundles what one admin or partner page needs to turn a table into
a list view and a row of summary cards: the source table, the fields the
search box looks at, the filter dropdowns, the default sort and the metric
rules behind the cards.

Usage:
    from fleetboard.presets import available_dashboards, get_preset

    preset = get_preset("fraud_detection")
    snapshot = compute_metrics(store.all(), preset.rules)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Tuple

from fleetboard.domain.fields import FieldRef, Record, to_number
from fleetboard.domain.models import MetricRule, QuerySpec, SortDirection
from fleetboard.metrics import (
    average,
    count,
    distinct,
    field_at_least,
    field_below,
    field_between,
    field_equals,
    field_in,
    field_truthy,
    older_than,
    percentage,
    total,
    within_last,
)


@dataclass(frozen=True)
class DashboardPreset:
    """
    Static description of one dashboard page.
    """

    name: str
    table: str
    description: str
    search_fields: Tuple[FieldRef, ...]
    filter_fields: Tuple[str, ...] = ()
    sort_key: Optional[FieldRef] = None
    sort_direction: SortDirection = SortDirection.ASC
    rules: Tuple[MetricRule, ...] = field(default_factory=tuple)

    def query(self, **overrides) -> QuerySpec:
        """Default QuerySpec for this page, with `overrides` applied."""
        values = {
            "search_fields": self.search_fields,
            "sort_key": self.sort_key,
            "sort_direction": self.sort_direction,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return QuerySpec(**values)


def _status(value: str):
    return field_equals("status", value)


def _discounts_given(record: Record) -> float:
    return to_number(record.get("used_count")) * to_number(record.get("discount_value"))


def _fleet_vehicles() -> DashboardPreset:
    return DashboardPreset(
        name="fleet_vehicles",
        table="vehicles",
        description="Fleet vehicle management",
        search_fields=(
            "name",
            "make",
            "model",
            "registration_number",
            "partner_name",
            "current_driver.name",
        ),
        filter_fields=("status", "category", "partner_id"),
        sort_key="created_at",
        sort_direction=SortDirection.DESC,
        rules=(
            count("total_vehicles"),
            count("available", _status("available")),
            count("rented", _status("rented")),
            count("maintenance", _status("maintenance")),
            total("weekly_revenue", "weekly_rate", _status("rented"), precision=2),
            distinct("partners", "partner_id"),
            percentage("utilisation_rate", _status("rented")),
        ),
    )


def _access_control() -> DashboardPreset:
    return DashboardPreset(
        name="access_control",
        table="users",
        description="Admin users, roles and security scores",
        search_fields=("full_name", "email", "role"),
        filter_fields=("role", "status"),
        sort_key="last_login",
        sort_direction=SortDirection.DESC,
        rules=(
            count("total_users"),
            count("active_users", _status("active")),
            count("suspended_users", _status("suspended")),
            count("super_admins", field_equals("role", "SUPER_ADMIN")),
            count("admins", field_equals("role", "ADMIN")),
            count("staff_members", field_equals("role", "ADMIN_STAFF")),
            average("average_security_score", "security_score", precision=1),
            count("high_risk_users", field_below("security_score", 70, missing=0)),
            count("recent_logins", within_last("last_login", timedelta(days=1))),
            count("inactive_users", older_than("last_login", timedelta(days=30))),
        ),
    )


def _document_access() -> DashboardPreset:
    return DashboardPreset(
        name="document_access",
        table="documents",
        description="Document access audit",
        search_fields=("name", "uploaded_by", "document_type"),
        filter_fields=("status", "access_level"),
        sort_key="uploaded_at",
        sort_direction=SortDirection.DESC,
        rules=(
            count("total_files"),
            count("approved_files", _status("approved")),
            count("pending_files", _status("pending")),
            count("rejected_files", _status("rejected")),
            count("restricted_files", field_equals("access_level", "restricted")),
            count("public_files", field_equals("access_level", "public")),
            count("private_files", field_equals("access_level", "private")),
            count("encrypted_files", field_equals("encryption_status", "encrypted")),
            count("critical_risk_files", field_equals("risk_level", "critical")),
            percentage("compliance_rate", field_equals("compliance_status", "compliant")),
            count("recent_uploads", within_last("uploaded_at", timedelta(days=7))),
        ),
    )


def _fraud_detection() -> DashboardPreset:
    return DashboardPreset(
        name="fraud_detection",
        table="fraud_alerts",
        description="Fraud alerts and risk bands",
        search_fields=("user_email", "ip_address", "alert_type", "description"),
        filter_fields=("severity", "status"),
        sort_key="detected_at",
        sort_direction=SortDirection.DESC,
        rules=(
            count("total_alerts"),
            count("active_alerts", _status("active")),
            count("critical_alerts", field_equals("severity", "critical")),
            count("resolved_alerts", _status("resolved")),
            average("average_risk_score", "risk_score", precision=1),
            distinct("unique_users", "user_email"),
            distinct("unique_ips", "ip_address"),
            percentage("prevention_rate", _status("resolved")),
            percentage("detection_rate", _status("active")),
            percentage("false_positive_rate", _status("false_positive")),
            total("financial_impact", "financial_impact", precision=2),
            count("automated_responses", field_truthy("automated_response")),
            count("manual_reviews", field_truthy("manual_review_required")),
            count("critical_risk", field_at_least("risk_score", 80)),
            count("high_risk", field_between("risk_score", 60, 80)),
            count("medium_risk", field_between("risk_score", 40, 60)),
            count("low_risk", field_below("risk_score", 40)),
        ),
    )


def _quick_responses() -> DashboardPreset:
    return DashboardPreset(
        name="quick_responses",
        table="quick_responses",
        description="Support quick responses",
        search_fields=("title", "content", "tags"),
        filter_fields=("category", "is_active"),
        sort_key="title",
        rules=(
            count("total_responses"),
            count("active_responses", field_truthy("is_active")),
            count("driver_responses", field_equals("category", "driver")),
            count("partner_responses", field_equals("category", "partner")),
            average("average_usage", "usage_count", precision=1),
        ),
    )


def _partner_vehicles() -> DashboardPreset:
    return DashboardPreset(
        name="partner_vehicles",
        table="vehicles",
        description="Partner vehicle onboarding",
        search_fields=("make", "model", "registration_number"),
        filter_fields=("status", "approval_status", "category"),
        sort_key="created_at",
        sort_direction=SortDirection.DESC,
        rules=(
            count("total_vehicles"),
            count("pending_approval", field_equals("approval_status", "pending")),
            count("approved", field_equals("approval_status", "approved")),
            count("rejected", field_equals("approval_status", "rejected")),
            count("available", _status("available")),
            average("average_weekly_rate", "weekly_rate", precision=2),
            percentage("approval_rate", field_equals("approval_status", "approved")),
        ),
    )


def _partner_marketing() -> DashboardPreset:
    return DashboardPreset(
        name="partner_marketing",
        table="promo_codes",
        description="Partner promo codes",
        search_fields=("code", "description"),
        filter_fields=("is_active", "discount_type"),
        sort_key="created_at",
        sort_direction=SortDirection.DESC,
        rules=(
            count("total_promo_codes"),
            count("active_promo_codes", field_truthy("is_active")),
            total("total_uses", "used_count"),
            total("total_discounts_given", _discounts_given, precision=2),
            percentage("active_rate", field_truthy("is_active")),
        ),
    )


def _partner_payments() -> DashboardPreset:
    return DashboardPreset(
        name="partner_payments",
        table="payment_instructions",
        description="Partner payment instructions",
        search_fields=("driver_name", "vehicle_name", "license_plate", "reference_number"),
        filter_fields=("status", "type", "payment_method"),
        sort_key="due_date",
        rules=(
            count("total_instructions"),
            count("pending_payments", _status("pending")),
            count("completed_payments", field_in("status", ("completed", "paid"))),
            count("overdue_payments", _status("overdue")),
            total("total_amount", "amount", precision=2),
            total("total_deposits", "deposit_amount", precision=2),
            distinct("drivers", "driver_id"),
        ),
    )


def _preset_factories() -> Dict[str, Callable[[], DashboardPreset]]:
    """Registry of available dashboard presets."""
    return {
        "access_control": _access_control,
        "document_access": _document_access,
        "fleet_vehicles": _fleet_vehicles,
        "fraud_detection": _fraud_detection,
        "partner_marketing": _partner_marketing,
        "partner_payments": _partner_payments,
        "partner_vehicles": _partner_vehicles,
        "quick_responses": _quick_responses,
    }


def available_dashboards() -> List[str]:
    """List available dashboard names."""
    return sorted(_preset_factories().keys())


def get_preset(name: str) -> DashboardPreset:
    factories = _preset_factories()
    if name not in factories:
        raise ValueError(f"Unknown dashboard '{name}'. Available: {', '.join(sorted(factories))}")
    return factories[name]()


__all__ = ["DashboardPreset", "available_dashboards", "get_preset"]
