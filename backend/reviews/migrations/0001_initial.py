# Generated migration for initial reviews app setup

import django.core.validators
import django.db.models.deletion
import uuid
from django.db import migrations, models


def _score_field():
    return models.PositiveSmallIntegerField(
        blank=True,
        null=True,
        validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)],
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('locations', '0001_initial'),
        ('user', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Review',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('overall_rating', models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('wifi_rating', _score_field()),
                ('noise_rating', _score_field()),
                ('comfort_rating', _score_field()),
                ('food_rating', _score_field()),
                ('title', models.CharField(blank=True, default='', max_length=255)),
                ('text', models.TextField(blank=True, default='')),
                ('visit_date', models.DateField(blank=True, null=True)),
                ('visit_time_of_day', models.CharField(blank=True, choices=[('morning', 'Morning'), ('afternoon', 'Afternoon'), ('evening', 'Evening')], default='', max_length=10)),
                ('crowd_level', _score_field()),
                ('helpful_votes', models.IntegerField(default=0, validators=[django.core.validators.MinValueValidator(0)])),
                ('total_votes', models.IntegerField(default=0, validators=[django.core.validators.MinValueValidator(0)])),
                ('state', models.CharField(choices=[('active', 'Active'), ('deleted', 'Deleted')], default='active', max_length=10)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews', to='user.userprofile')),
                ('venue', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews', to='locations.venue')),
            ],
            options={
                'db_table': 'reviews_review',
                'indexes': [
                    models.Index(fields=['venue', 'state'], name='review_venue_state_idx'),
                    models.Index(fields=['user', 'state'], name='review_user_state_idx'),
                    models.Index(fields=['-created_at'], name='review_created_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('state', 'active')), fields=('user', 'venue'), name='unique_active_review_per_user_venue'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ReviewVote',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('is_helpful', models.BooleanField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('review', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='votes', to='reviews.review')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='review_votes', to='user.userprofile')),
            ],
            options={
                'db_table': 'reviews_review_vote',
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'review'), name='unique_vote_per_user_review'),
                ],
            },
        ),
    ]
