import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Promotion',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(help_text='Code customers enter at checkout (stored upper-case)', max_length=50, unique=True)),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True, default='')),
                ('discount_type', models.CharField(choices=[('percentage', 'Percentage'), ('fixed_amount', 'Fixed amount'), ('free_shipping', 'Free shipping')], max_length=20)),
                ('value', models.PositiveBigIntegerField(default=0, help_text='Percent (0-100) or fixed amount in minor currency units')),
                ('max_discount', models.PositiveBigIntegerField(blank=True, help_text='Upper bound on a percentage discount', null=True)),
                ('min_order', models.PositiveBigIntegerField(default=0, help_text='Minimum order subtotal for the code to apply')),
                ('start_date', models.DateTimeField()),
                ('end_date', models.DateTimeField()),
                ('usage_limit', models.PositiveIntegerField(blank=True, help_text='Maximum number of redemptions (empty means unlimited)', null=True, validators=[django.core.validators.MinValueValidator(1)])),
                ('usage_count', models.PositiveIntegerField(default=0)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Promotion',
                'verbose_name_plural': 'Promotions',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['is_active', 'start_date', 'end_date'], name='promotion_active_window'),
                ],
            },
        ),
    ]
