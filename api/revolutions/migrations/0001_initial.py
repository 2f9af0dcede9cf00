from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Event",
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
                    "external_id",
                    models.CharField(blank=True, max_length=32, null=True, unique=True),
                ),
                ("name", models.CharField(max_length=500)),
                ("start_date", models.DateField(db_index=True)),
                ("end_date", models.DateField(blank=True, null=True)),
                ("country", models.CharField(blank=True, max_length=500)),
                (
                    "country_iso",
                    models.CharField(blank=True, db_index=True, max_length=2, null=True),
                ),
                (
                    "country_key",
                    models.CharField(
                        blank=True, db_index=True, editable=False, max_length=500
                    ),
                ),
                ("latitude", models.FloatField(blank=True, null=True)),
                ("longitude", models.FloatField(blank=True, null=True)),
                ("type", models.CharField(blank=True, max_length=100)),
                ("description", models.TextField(blank=True)),
                ("estimated_deaths", models.PositiveIntegerField(blank=True, null=True)),
                ("sources", models.CharField(blank=True, max_length=500)),
                ("tags", models.JSONField(blank=True, default=list)),
                ("created_datetime", models.DateTimeField(auto_now_add=True, null=True)),
                ("updated_datetime", models.DateTimeField(auto_now=True, null=True)),
            ],
            options={
                "ordering": ["-start_date", "-id"],
            },
        ),
    ]
