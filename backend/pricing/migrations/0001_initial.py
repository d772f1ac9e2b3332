from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='PricingTier',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('vehicle_type', models.CharField(choices=[('mini', 'Mini'), ('sedan', 'Sedan'), ('van', 'Van')], db_index=True, default='mini', max_length=10)),
                ('base_fare', models.FloatField(default=2)),
                ('per_km', models.FloatField(default=1)),
                ('per_minute', models.FloatField(default=0.2)),
                ('waiting_per_minute', models.FloatField(default=0.1)),
                ('surge_multiplier', models.FloatField(default=1)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'pricing_tiers',
                'ordering': ['vehicle_type', '-updated_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='pricingtier',
            constraint=models.UniqueConstraint(fields=('vehicle_type', 'base_fare', 'per_km', 'per_minute', 'waiting_per_minute', 'surge_multiplier'), name='unique_pricing_parameters'),
        ),
    ]
