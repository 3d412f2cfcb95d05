# Generated manually

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="FiscalDocument",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("issuer_tax_id", models.CharField(max_length=13)),
                ("series", models.CharField(max_length=6)),
                ("document_type", models.CharField(default="01", max_length=2)),
                ("environment", models.CharField(default="1", max_length=1)),
                ("emission_type", models.CharField(default="1", max_length=1)),
                ("sequential_number", models.PositiveIntegerField()),
                ("issue_date", models.DateField(default=django.utils.timezone.localdate)),
                ("access_key", models.CharField(blank=True, max_length=49, null=True, unique=True)),
                ("authorization_code", models.CharField(blank=True, max_length=64, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("DRAFT", "Draft"),
                            ("SENT", "Sent"),
                            ("AUTHORIZED", "Authorized"),
                            ("ERROR", "Error"),
                            ("FAILED", "Failed"),
                            ("DEFINITIVELY_FAILED", "Definitively failed"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        db_index=True,
                        default="DRAFT",
                        max_length=24,
                    ),
                ),
                ("retry_count", models.PositiveIntegerField(default=0)),
                ("last_retry_at", models.DateTimeField(blank=True, null=True)),
                ("last_error", models.TextField(blank=True)),
                ("payload", models.JSONField(default=dict)),
                ("total_amount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("order_reference", models.CharField(blank=True, db_index=True, max_length=64)),
                ("cancellation_reason", models.CharField(blank=True, max_length=255)),
                ("authorized_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("lease_token", models.CharField(blank=True, max_length=32)),
                ("lease_expires_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "supersedes",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="superseded_by",
                        to="fiscal.fiscaldocument",
                    ),
                ),
            ],
            options={
                "verbose_name": "Fiscal Document",
                "verbose_name_plural": "Fiscal Documents",
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="fiscaldocument",
            constraint=models.UniqueConstraint(
                fields=("issuer_tax_id", "series", "sequential_number"),
                name="unique_fiscal_document_sequential",
            ),
        ),
        migrations.CreateModel(
            name="TransactionRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[("EMISSION", "Emission"), ("CANCELLATION", "Cancellation")],
                        max_length=16,
                    ),
                ),
                ("request_payload", models.JSONField(default=dict)),
                ("response_payload", models.JSONField(blank=True, null=True)),
                ("success", models.BooleanField(default=False)),
                ("error_message", models.TextField(blank=True, null=True)),
                ("status_code", models.IntegerField(blank=True, null=True)),
                ("retry_count", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "document",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="fiscal.fiscaldocument",
                    ),
                ),
            ],
            options={
                "verbose_name": "Transaction Record",
                "verbose_name_plural": "Transaction Records",
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="ScheduledRetry",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("retry_count", models.PositiveIntegerField()),
                (
                    "reason",
                    models.CharField(
                        choices=[
                            ("INTRA_ROUND", "Intra-round"),
                            ("NEXT_ROUND", "Next round"),
                            ("RECOVERY", "Crash recovery"),
                            ("SWEEP", "Automatic sweep"),
                            ("MANUAL", "Manual"),
                        ],
                        max_length=16,
                    ),
                ),
                ("run_at", models.DateTimeField()),
                (
                    "state",
                    models.CharField(
                        choices=[("PENDING", "Pending"), ("CONSUMED", "Consumed")],
                        default="PENDING",
                        max_length=10,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "document",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="scheduled_retries",
                        to="fiscal.fiscaldocument",
                    ),
                ),
            ],
            options={
                "verbose_name": "Scheduled Retry",
                "verbose_name_plural": "Scheduled Retries",
                "ordering": ["run_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="scheduledretry",
            constraint=models.UniqueConstraint(
                fields=("document", "retry_count"),
                name="unique_scheduled_retry_per_count",
            ),
        ),
        migrations.CreateModel(
            name="DocumentSequence",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("issuer_tax_id", models.CharField(max_length=13)),
                ("series", models.CharField(max_length=6)),
                ("last_number", models.PositiveIntegerField(default=0)),
            ],
            options={
                "verbose_name": "Document Sequence",
                "verbose_name_plural": "Document Sequences",
            },
        ),
        migrations.AddConstraint(
            model_name="documentsequence",
            constraint=models.UniqueConstraint(
                fields=("issuer_tax_id", "series"),
                name="unique_document_sequence",
            ),
        ),
        migrations.CreateModel(
            name="AuditEvent",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("action", models.CharField(max_length=100)),
                ("metadata", models.JSONField(default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "document",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="audit_events",
                        to="fiscal.fiscaldocument",
                    ),
                ),
            ],
            options={
                "verbose_name": "Audit Event",
                "verbose_name_plural": "Audit Events",
                "ordering": ["-created_at"],
            },
        ),
    ]
