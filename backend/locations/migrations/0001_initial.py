# Generated migration for initial locations app setup

import django.contrib.gis.db.models.fields
import django.core.validators
import django.db.models.deletion
import uuid
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('user', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Venue',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(help_text='The official name of the venue', max_length=255)),
                ('address', models.TextField(help_text='Human readable physical address')),
                ('city', models.CharField(blank=True, default='', max_length=255)),
                ('country', models.CharField(blank=True, default='', max_length=255)),
                ('postal_code', models.CharField(blank=True, default='', max_length=20)),
                ('location', django.contrib.gis.db.models.fields.PointField(geography=True, help_text='PostGIS geography(Point, 4326): x = longitude, y = latitude', srid=4326)),
                ('place_id', models.CharField(blank=True, help_text='Unique ID from the places provider to prevent duplicates', max_length=255, null=True, unique=True)),
                ('phone', models.CharField(blank=True, default='', max_length=50)),
                ('website', models.URLField(blank=True, default='', max_length=500)),
                ('hours', models.JSONField(blank=True, default=dict, help_text='{"monday": {"open": "08:00", "close": "18:00"}, ...}')),
                ('status', models.CharField(choices=[('active', 'Active'), ('pending', 'Pending'), ('closed', 'Closed'), ('archived', 'Archived')], default='pending', max_length=10)),
                ('overall_rating', models.DecimalField(decimal_places=1, default=Decimal('0.0'), help_text='Mean of active review ratings, 1dp; 0 when there are none', max_digits=2)),
                ('total_reviews', models.IntegerField(default=0, validators=[django.core.validators.MinValueValidator(0)])),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_venues', to='user.userprofile')),
            ],
            options={
                'db_table': 'locations_venue',
                'indexes': [
                    models.Index(fields=['status'], name='venue_status_idx'),
                    models.Index(fields=['-overall_rating'], name='venue_rating_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='VenueAmenities',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('wifi_quality', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('wifi_password_required', models.BooleanField(default=True)),
                ('noise_level', models.PositiveSmallIntegerField(blank=True, help_text='1 = very quiet, 5 = very noisy', null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('seating_comfort', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('price_range', models.PositiveSmallIntegerField(blank=True, help_text='$ = 1 ... $$$$ = 4', null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(4)])),
                ('power_outlets', models.BooleanField(default=False)),
                ('has_food', models.BooleanField(default=False)),
                ('has_coffee', models.BooleanField(default=True)),
                ('outdoor_seating', models.BooleanField(default=False)),
                ('natural_lighting', models.BooleanField(default=False)),
                ('air_conditioning', models.BooleanField(default=False)),
                ('pet_friendly', models.BooleanField(default=False)),
                ('wheelchair_accessible', models.BooleanField(default=False)),
                ('meeting_rooms', models.BooleanField(default=False)),
                ('phone_booth', models.BooleanField(default=False)),
                ('parking_available', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('venue', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='amenities', to='locations.venue')),
            ],
            options={
                'db_table': 'locations_venue_amenities',
                'verbose_name_plural': 'venue amenities',
            },
        ),
    ]
