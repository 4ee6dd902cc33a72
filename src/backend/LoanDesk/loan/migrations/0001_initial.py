import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import loan.validators


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('student', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='EquipmentItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_code', models.CharField(help_text='Unique item code', max_length=50, unique=True, validators=[loan.validators.validate_item_code], verbose_name='Item Code')),
                ('name', models.CharField(max_length=150, verbose_name='Name')),
                ('category', models.CharField(blank=True, max_length=100, verbose_name='Category')),
                ('location', models.CharField(blank=True, max_length=100, verbose_name='Location')),
                ('condition_notes', models.TextField(blank=True, verbose_name='Condition Notes')),
                ('status', models.CharField(choices=[('available', 'Available'), ('borrowed', 'Borrowed'), ('reserved', 'Reserved'), ('repair', 'Repair')], default='available', max_length=20, verbose_name='Status')),
            ],
            options={
                'verbose_name': 'Equipment Item',
                'verbose_name_plural': 'Equipment Items',
                'ordering': ['item_code'],
            },
        ),
        migrations.CreateModel(
            name='Loan',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('borrowed_at', models.DateTimeField(verbose_name='Borrowed At')),
                ('due_at', models.DateTimeField(verbose_name='Due At')),
                ('returned_at', models.DateTimeField(blank=True, null=True, verbose_name='Returned At')),
                ('status', models.CharField(choices=[('active', 'Active'), ('returned', 'Returned')], default='active', max_length=20, verbose_name='Status')),
                ('borrowed_by', models.ForeignKey(blank=True, help_text='User who recorded this loan', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Borrowed By')),
                ('equipment', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='loans', to='loan.equipmentitem', verbose_name='Equipment')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='loans', to='student.student', verbose_name='Student')),
            ],
            options={
                'verbose_name': 'Loan',
                'verbose_name_plural': 'Loans',
                'ordering': ['-borrowed_at', '-pk'],
            },
        ),
        migrations.AddConstraint(
            model_name='loan',
            constraint=models.UniqueConstraint(condition=models.Q(('returned_at__isnull', True)), fields=('equipment',), name='unique_open_loan_per_equipment'),
        ),
    ]
