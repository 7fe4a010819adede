from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User

# ───────────────────────────────
#  User
# ───────────────────────────────
@admin.register(User)
class UserAdmin(BaseUserAdmin):
     list_display = ("username", "email", "name", "role", "company_id", "is_staff")
     list_filter  = ("role", "is_staff", "is_superuser", "is_active")
     search_fields = ("username", "email", "name")
     ordering = ("-date_joined",)
     fieldsets = (
            (None, {"fields": ("username", "email", "password")}),
            ("Personal info", {"fields": ("name", "first_name", "last_name")}),
            ("Tenant",        {"fields": ("company_id", "role")}),
            ("Permissions",   {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")}),
            ("Dates",         {"fields": ("last_login", "date_joined")}),
        )
