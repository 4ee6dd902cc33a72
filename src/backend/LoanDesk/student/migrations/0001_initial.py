import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import student.validators


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Student',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('student_number', models.CharField(default=student.validators.generate_next_student_number, help_text='Unique student identifier', max_length=32, unique=True, validators=[student.validators.validate_student_number], verbose_name='Student Number')),
                ('full_name', models.CharField(help_text='Student name', max_length=150, verbose_name='Full Name')),
                ('year_group', models.CharField(blank=True, max_length=50, verbose_name='Year Group')),
                ('class_name', models.CharField(blank=True, max_length=50, verbose_name='Class')),
                ('house', models.CharField(blank=True, max_length=50, verbose_name='House')),
                ('email', models.EmailField(blank=True, max_length=254, verbose_name='Email')),
                ('trust_score', models.PositiveSmallIntegerField(default=100, help_text='Return reliability score (0-100)', validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)], verbose_name='Trust Score')),
                ('is_blacklisted', models.BooleanField(default=False, help_text='Student is suspended from borrowing', verbose_name='Blacklisted')),
                ('blacklist_end_date', models.DateTimeField(blank=True, help_text='Date the current suspension ends', null=True, verbose_name='Suspension End')),
                ('blacklist_reason', models.TextField(blank=True, null=True, verbose_name='Suspension Reason')),
                ('created', models.DateTimeField(auto_now_add=True, verbose_name='Created')),
                ('updated', models.DateTimeField(auto_now=True, verbose_name='Updated')),
            ],
            options={
                'verbose_name': 'Student',
                'verbose_name_plural': 'Students',
                'ordering': ['full_name', 'pk'],
            },
        ),
        migrations.CreateModel(
            name='SuspensionEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('start_date', models.DateTimeField(verbose_name='Start Date')),
                ('end_date', models.DateTimeField(verbose_name='End Date')),
                ('reason', models.TextField(verbose_name='Reason')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('issued_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Issued By')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='suspensions', to='student.student', verbose_name='Student')),
            ],
            options={
                'verbose_name': 'Suspension',
                'verbose_name_plural': 'Suspensions',
                'ordering': ['-start_date', '-pk'],
            },
        ),
        migrations.CreateModel(
            name='DismissedNotification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('late_returns_count', models.PositiveIntegerField(verbose_name='Late Returns')),
                ('warning_threshold', models.PositiveIntegerField(verbose_name='Warning Threshold')),
                ('dismissed_at', models.DateTimeField(verbose_name='Dismissed At')),
                ('dismissed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Dismissed By')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='dismissed_notifications', to='student.student', verbose_name='Student')),
            ],
            options={
                'verbose_name': 'Dismissed Notification',
                'verbose_name_plural': 'Dismissed Notifications',
                'ordering': ['-dismissed_at', '-pk'],
            },
        ),
        migrations.AddConstraint(
            model_name='dismissednotification',
            constraint=models.UniqueConstraint(fields=('student', 'late_returns_count', 'warning_threshold'), name='unique_dismissal_per_count'),
        ),
    ]
