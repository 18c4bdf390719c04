from collections import namedtuple
from dataclasses import dataclass, field
from typing import Optional, Tuple

from flask_login import UserMixin


class ApiUser(UserMixin):
    """Authenticated user as reported by the backend's ``/auth/me`` endpoint."""

    def __init__(self, id, name='', email='', role='', status=''):
        self.id = id
        self.name = name or ''
        self.email = email or ''
        self.role = role or ''
        self.status = status or ''

    @classmethod
    def from_payload(cls, payload):
        # Older backends send the role as {"id": .., "name": ..}
        role = payload.get('role')
        if isinstance(role, dict):
            role = role.get('name')
        return cls(
            id=payload.get('id'),
            name=payload.get('name'),
            email=payload.get('email'),
            role=role,
            status=payload.get('status'),
        )

    def get_id(self):
        return str(self.id)

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'email': self.email, 'role': self.role, 'status': self.status}

    def __repr__(self):
        return f'<ApiUser {self.id} {self.email!r}>'


# kind: text | number | int | date | select | textarea
Field = namedtuple('Field', 'name label kind choices required create_only', defaults=('text', (), False, False))

Column = namedtuple('Column', 'path heading money', defaults=(False,))


@dataclass(frozen=True)
class Resource:
    """One REST collection exposed as a set of dashboard pages."""
    name: str
    label: str
    singular: str
    columns: Tuple[Column, ...]
    fields: Tuple[Field, ...]
    item_fields: Tuple[Field, ...] = field(default_factory=tuple)
    attach_user: bool = False
    has_stats: bool = False
    server_search: bool = False
    title_field: Optional[str] = None

    def editable_fields(self, creating):
        return [f for f in self.fields if creating or not f.create_only]


_RETURN_STATUSES = ('completed', 'pending', 'rejected')
_SERVICE_STATUSES = ('pending', 'in progress', 'completed')
_LINE_ITEMS = (
    Field('product_id', 'Product ID', 'int', required=True),
    Field('quantity', 'Quantity', 'int', required=True),
    Field('unitPrice', 'Unit Price', 'number', required=True),
)

RESOURCES = {r.name: r for r in (
    Resource(
        name='product', label='Products', singular='Product', title_field='name',
        columns=(
            Column('id', '#'), Column('name', 'Name'), Column('Categories.name', 'Category'),
            Column('quantity', 'Stock'), Column('retailPrice', 'Retail Price', True), Column('serial', 'Serial'),
        ),
        fields=(
            Field('name', 'Name', required=True),
            Field('specification', 'Specification'),
            Field('description', 'Description', 'textarea'),
            Field('quantity', 'Quantity', 'int', required=True),
            Field('purchasePrice', 'Purchase Price', 'number', required=True),
            Field('wholesalePrice', 'Wholesale Price', 'number'),
            Field('retailPrice', 'Retail Price', 'number', required=True),
            Field('serial', 'Serial'),
            Field('warranty', 'Warranty', 'select', ('Yes', 'No')),
            Field('category_id', 'Category ID', 'int'),
        ),
    ),
    Resource(
        name='sale', label='Sales', singular='Sale', attach_user=True, has_stats=True,
        columns=(
            Column('id', '#'), Column('Customers.name', 'Customer'), Column('totalAmount', 'Total', True),
            Column('totalPaid', 'Paid', True), Column('dueDate', 'Due Date'),
        ),
        fields=(
            Field('customer_id', 'Customer ID', 'int', required=True),
            Field('totalAmount', 'Total Amount', 'number', required=True, create_only=True),
            Field('totalPaid', 'Total Paid', 'number'),
            Field('dueDate', 'Due Date', 'date'),
        ),
        item_fields=_LINE_ITEMS,
    ),
    Resource(
        name='salesreturn', label='Sales Returns', singular='Sales Return', title_field='return_number',
        columns=(
            Column('return_number', 'Return #'), Column('customer_name', 'Customer'), Column('date', 'Date'),
            Column('total_amount', 'Amount', True), Column('status', 'Status'),
        ),
        fields=(
            Field('return_number', 'Return Number', required=True),
            Field('original_invoice', 'Original Invoice', required=True),
            Field('customer_name', 'Customer Name', required=True),
            Field('customer_phone', 'Customer Phone'),
            Field('date', 'Date', 'date'),
            Field('total_amount', 'Total Amount', 'number'),
            Field('reason', 'Reason', 'textarea'),
            Field('status', 'Status', 'select', _RETURN_STATUSES),
            Field('refund_method', 'Refund Method'),
        ),
    ),
    Resource(
        name='purchase', label='Purchases', singular='Purchase', attach_user=True,
        columns=(
            Column('id', '#'), Column('Suppliers.name', 'Supplier'), Column('totalAmount', 'Total', True),
            Column('totalPaid', 'Paid', True), Column('dueDate', 'Due Date'),
        ),
        fields=(
            Field('supplier_id', 'Supplier ID', 'int', required=True),
            Field('totalAmount', 'Total Amount', 'number', required=True),
            Field('totalPaid', 'Total Paid', 'number'),
            Field('dueDate', 'Due Date', 'date'),
            Field('note', 'Note', 'textarea'),
        ),
        item_fields=_LINE_ITEMS,
    ),
    Resource(
        name='purchasereturn', label='Purchase Returns', singular='Purchase Return', title_field='return_number',
        columns=(
            Column('return_number', 'Return #'), Column('supplier_name', 'Supplier'), Column('date', 'Date'),
            Column('total_amount', 'Amount', True), Column('status', 'Status'),
        ),
        fields=(
            Field('return_number', 'Return Number', required=True),
            Field('original_invoice', 'Original Invoice', required=True),
            Field('supplier_name', 'Supplier Name', required=True),
            Field('supplier_phone', 'Supplier Phone'),
            Field('date', 'Date', 'date'),
            Field('total_amount', 'Total Amount', 'number'),
            Field('reason', 'Reason', 'textarea'),
            Field('status', 'Status', 'select', _RETURN_STATUSES),
            Field('refund_method', 'Refund Method'),
        ),
    ),
    Resource(
        name='exchange', label='Exchanges', singular='Exchange', title_field='exchange_number',
        columns=(
            Column('exchange_number', 'Exchange #'), Column('customer_name', 'Customer'),
            Column('total_paid', 'Paid', True), Column('total_payback', 'Payback', True),
            Column('net_amount', 'Net', True), Column('status', 'Status'),
        ),
        fields=(
            Field('exchange_number', 'Exchange Number', required=True),
            Field('original_invoice', 'Original Invoice'),
            Field('customer_name', 'Customer Name', required=True),
            Field('customer_phone', 'Customer Phone'),
            Field('date', 'Date', 'date'),
            Field('total_paid', 'Total Paid', 'number'),
            Field('total_payback', 'Total Payback', 'number'),
            Field('reason', 'Reason', 'textarea'),
            Field('status', 'Status'),
        ),
    ),
    Resource(
        name='service', label='Services', singular='Service', title_field='service_number',
        columns=(
            Column('service_number', 'Service #'), Column('customer_name', 'Customer'),
            Column('service_product_name', 'Product'), Column('service_cost', 'Cost', True),
            Column('service_status', 'Status'), Column('assigned_technician', 'Technician'),
        ),
        fields=(
            Field('service_number', 'Service Number', required=True),
            Field('customer_name', 'Customer Name', required=True),
            Field('customer_phone', 'Customer Phone'),
            Field('service_product_name', 'Product Name', required=True),
            Field('service_description', 'Description', 'textarea'),
            Field('service_cost', 'Cost', 'number'),
            Field('service_status', 'Status', 'select', _SERVICE_STATUSES),
            Field('assigned_technician', 'Technician'),
            Field('date', 'Date', 'date'),
        ),
    ),
    Resource(
        name='customer', label='Customers', singular='Customer', has_stats=True, server_search=True,
        title_field='name',
        columns=(
            Column('id', '#'), Column('name', 'Name'), Column('phone', 'Phone'),
            Column('email', 'Email'), Column('address', 'Address'),
        ),
        fields=(
            Field('name', 'Name', required=True),
            Field('email', 'Email'),
            Field('phone', 'Phone', required=True),
            Field('address', 'Address', 'textarea'),
        ),
    ),
)}
