from django.contrib import admin
from .models import Province, Ward


@admin.register(Province)
class ProvinceAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'division_type', 'is_active']
    search_fields = ['name', 'code']


@admin.register(Ward)
class WardAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'province', 'is_active']
    list_filter = ['province']
    search_fields = ['name', 'code']
