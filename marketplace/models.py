from django.db import models

# Business rows live in DynamoDB; these are the value sets shared by
# forms, views and the order processor.

LOW_STOCK_THRESHOLD = 5


class Role(models.TextChoices):
    VENDOR = "vendor", "Street Food Vendor"
    SUPPLIER = "supplier", "Material Supplier"


class Unit(models.TextChoices):
    KG = "kg", "Kilogram (kg)"
    G = "g", "Gram (g)"
    L = "l", "Liter (l)"
    ML = "ml", "Milliliter (ml)"
    PIECE = "piece", "Piece"
    DOZEN = "dozen", "Dozen"


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class OrderType(models.TextChoices):
    INDIVIDUAL = "individual", "Individual"
    GROUP = "group", "Group"


class GroupOrderStatus(models.TextChoices):
    OPEN = "open", "Open"
    UNLOCKED = "unlocked", "Unlocked"
    ORDERED = "ordered", "Ordered"
    EXPIRED = "expired", "Expired"


# current status -> statuses a supplier may move an order to
ORDER_TRANSITIONS = {
    OrderStatus.PENDING.value: (OrderStatus.CONFIRMED.value, OrderStatus.CANCELLED.value),
    OrderStatus.CONFIRMED.value: (OrderStatus.DELIVERED.value,),
}
