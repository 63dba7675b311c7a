"""
Custom User Model for the Clothing Store backend
================================================
Email-based authentication, roles and delivery addresses.
"""

import uuid
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin, BaseUserManager
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from django.core.validators import RegexValidator
from apps.base.core.system.models import TimeStampedModel


class UserManager(BaseUserManager):
    """
    Custom user manager for email-based authentication.
    """

    def create_user(self, email, password=None, **extra_fields):
        """Create and return a regular user."""
        if not email:
            raise ValueError(_('The Email field must be set'))

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Create and return a superuser."""
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', User.Role.ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError(_('Superuser must have is_staff=True.'))
        if extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser must have is_superuser=True.'))

        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin, TimeStampedModel):
    """
    Store customer or staff account.
    Uses email for authentication instead of username.
    """

    class Role(models.TextChoices):
        """User role choices."""
        CUSTOMER = 'customer', _('Customer')
        STAFF = 'staff', _('Staff')
        ADMIN = 'admin', _('Administrator')

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )
    email = models.EmailField(
        _('Email address'),
        unique=True,
        db_index=True,
        max_length=255
    )

    phone_regex = RegexValidator(
        regex=r'^\+?\d{9,15}$',
        message=_('Phone number must be in format: +999999999. Up to 15 digits allowed.')
    )
    phone_number = models.CharField(
        _('Phone number'),
        validators=[phone_regex],
        max_length=17,
        blank=True,
        null=True,
        unique=True
    )

    first_name = models.CharField(_('First name'), max_length=150, blank=True)
    last_name = models.CharField(_('Last name'), max_length=150, blank=True)

    role = models.CharField(
        _('Role'),
        max_length=20,
        choices=Role.choices,
        default=Role.CUSTOMER,
        db_index=True
    )

    is_active = models.BooleanField(
        _('Active'),
        default=True,
        help_text=_('Designates whether this user should be treated as active.')
    )
    is_staff = models.BooleanField(
        _('Staff status'),
        default=False,
        help_text=_('Designates whether the user can log into admin site.')
    )

    last_login = models.DateTimeField(_('Last login'), blank=True, null=True)
    date_joined = models.DateTimeField(_('Date joined'), default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = _('User')
        verbose_name_plural = _('Users')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['email', 'is_active']),
            models.Index(fields=['role', 'is_active']),
        ]

    def __str__(self):
        return self.email

    @property
    def full_name(self):
        """Return user's full name."""
        return f'{self.first_name} {self.last_name}'.strip() or self.email

    def get_short_name(self):
        return self.first_name or self.email.split('@')[0]

    @property
    def is_admin(self):
        return self.role == self.Role.ADMIN or self.is_superuser


class UserAddress(TimeStampedModel):
    """
    User delivery addresses, keyed to the two-level province/ward units.
    """

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='addresses'
    )

    # Contact
    recipient_name = models.CharField(_('Recipient name'), max_length=255)
    phone_number = models.CharField(_('Phone number'), max_length=17)

    # Address details
    street_address = models.CharField(_('Street address'), max_length=500)
    ward = models.ForeignKey(
        'locations.Ward',
        on_delete=models.PROTECT,
        related_name='+',
        null=True,
        blank=True
    )
    province = models.ForeignKey(
        'locations.Province',
        on_delete=models.PROTECT,
        related_name='+'
    )

    # Flags
    is_default = models.BooleanField(_('Default address'), default=False)
    is_active = models.BooleanField(_('Active'), default=True)

    class Meta:
        verbose_name = _('User Address')
        verbose_name_plural = _('User Addresses')
        ordering = ['-is_default', '-created_at']

    def __str__(self):
        return f'{self.recipient_name} - {self.full_address}'

    def save(self, *args, **kwargs):
        """Ensure only one default address per user."""
        if self.is_default:
            UserAddress.objects.filter(
                user=self.user,
                is_default=True
            ).exclude(pk=self.pk).update(is_default=False)
        super().save(*args, **kwargs)

    @property
    def ward_name(self):
        return self.ward.name if self.ward_id else ''

    @property
    def province_name(self):
        return self.province.name

    @property
    def full_address(self):
        """Return formatted full address."""
        parts = [self.street_address]
        if self.ward_id:
            parts.append(self.ward.name)
        parts.append(self.province.name)
        return ', '.join(parts)
