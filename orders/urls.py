"""
URL routing for order API endpoints.
"""
from django.urls import path
from . import views

app_name = 'orders'

urlpatterns = [
    path('orders/', views.OrderListView.as_view(), name='order-list'),
    path('orders/checkout/', views.CheckoutView.as_view(), name='order-checkout'),
    path('orders/lookup/<str:order_no>/', views.OrderLookupView.as_view(), name='order-lookup'),
    path('orders/<int:pk>/', views.OrderDetailView.as_view(), name='order-detail'),
    path('orders/<int:pk>/items/', views.OrderItemAddView.as_view(), name='order-item-add'),
    path('orders/<int:pk>/items/<int:item_id>/quantity/',
         views.OrderItemQuantityView.as_view(), name='order-item-quantity'),
    path('orders/<int:pk>/items/<int:item_id>/cancellation/',
         views.OrderItemCancellationView.as_view(), name='order-item-cancellation'),
    path('orders/<int:pk>/mark-paid/', views.MarkPaidView.as_view(), name='order-mark-paid'),
    path('orders/<int:pk>/invoice/', views.InvoiceGenerateView.as_view(), name='order-invoice'),
    path('orders/<int:pk>/invoice/download/',
         views.InvoiceDownloadView.as_view(), name='order-invoice-download'),
    path('orders/<int:pk>/audit-logs/', views.OrderAuditLogView.as_view(), name='order-audit-logs'),
]
