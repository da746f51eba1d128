from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    """Extended user model with a public display name"""

    display_name = models.CharField(max_length=50, blank=True)

    class Meta:
        db_table = 'users'

    def __str__(self):
        return self.display_name or self.username
