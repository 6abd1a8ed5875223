from django.contrib.auth import views as auth_views
from django.urls import path

from . import views

urlpatterns = [
    # Landing & dashboard
    path('', views.index, name='index'),
    path('dashboard/', views.dashboard, name='dashboard'),

    # Auth
    path("auth/", views.SignInView.as_view(), name="login"),
    path("auth/signup/", views.signup, name="signup"),
    path("auth/logout/", auth_views.LogoutView.as_view(next_page="login"), name="logout"),

    # Orders (vendor)
    path('orders/', views.vendor_orders, name='vendor_orders'),
    path('orders/place/<str:material_id>/', views.place_order, name='place_order'),
    path('orders/rate/<str:order_id>/', views.rate_order, name='rate_order'),

    # Cart (vendor)
    path('cart/', views.cart, name='cart'),
    path('cart/add/<str:material_id>/', views.add_to_cart, name='add_to_cart'),
    path('cart/update/<str:item_id>/', views.update_cart_item, name='update_cart_item'),
    path('cart/remove/<str:item_id>/', views.remove_cart_item, name='remove_cart_item'),
    path('cart/checkout/', views.cart_checkout, name='cart_checkout'),

    # Group orders
    path('group-orders/create/<str:material_id>/', views.create_group_order, name='create_group_order'),
    path('group-orders/join/<str:group_order_id>/', views.join_group_order, name='join_group_order'),
    path('group-orders/checkout/<str:group_order_id>/', views.checkout_group_order, name='checkout_group_order'),

    # Materials & orders (supplier)
    path('materials/add/', views.add_material, name='add_material'),
    path('materials/edit/<str:material_id>/', views.edit_material, name='edit_material'),
    path('orders/status/<str:order_id>/', views.update_order_status, name='update_order_status'),

    # Analytics
    path('analytics/', views.analytics_view, name='analytics'),
    path('analytics/data/', views.analytics_data, name='analytics_data'),
]
