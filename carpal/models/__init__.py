from carpal.models.models import (
    Trip, UserDevice
)
