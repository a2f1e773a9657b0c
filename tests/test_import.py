"""
Tests for bulk CSV / Excel imports.
"""

import csv
import io

import pandas as pd
import pytest


def _upload(client, headers, kind, content, filename='upload.csv', dry_run=False):
    data = {'file': (io.BytesIO(content.encode('utf-8') if isinstance(content, str) else content), filename)}
    if dry_run:
        data['dry_run'] = '1'
    return client.post(f'/api/admin/import/{kind}', headers=headers, data=data,
                       content_type='multipart/form-data')


class TestTemplates:
    """Template downloads."""

    @pytest.mark.parametrize("kind, first_column", [
        ('customers', 'customer_code'),
        ('products', 'product_code'),
        ('prices', 'product_code'),
    ])
    def test_template_has_header_and_example(self, client, manager_headers, kind, first_column):
        """Header row plus one example row, served as a CSV attachment."""
        response = client.get(f'/api/admin/import/{kind}/template', headers=manager_headers)
        assert response.status_code == 200
        assert response.headers['Content-Type'].startswith('text/csv')
        assert 'attachment' in response.headers['Content-Disposition']
        rows = list(csv.reader(io.StringIO(response.get_data(as_text=True))))
        assert rows[0][0] == first_column
        assert len(rows) == 2

    def test_unknown_kind(self, client, manager_headers):
        """Only customers, products and prices can be imported."""
        assert client.get('/api/admin/import/orders/template', headers=manager_headers).status_code == 404


class TestCustomerImport:
    """Customer rows."""

    def test_valid_and_invalid_rows(self, app, client, manager_headers, sample):
        """N valid + M invalid rows gives N inserts and exactly M errors."""
        content = (
            "Customer_Code,Customer_Name,Mobile_No,Customer_Type,Credit_Limit\n"
            "C100,New Shop,9800000001,retail,5000\n"
            ",Missing Code,9800000002,retail,\n"
            "C101,Bad Type,9800000003,dealer,\n"
            "\n"
            "C001,Already There,9800000004,retail,\n"
            "C102,\"Shop, With Comma\",9800000005,Wholesale,abc\n"
            "C100,Repeated In File,9800000006,retail,\n"
        )
        response = _upload(client, manager_headers, 'customers', content)
        assert response.status_code == 200
        result = response.get_json()
        assert result['inserted'] == 2
        assert result['dry_run'] is False
        assert len(result['errors']) == 4
        assert result['errors'][0] == "Row 3: Missing required fields (customer_code)"
        assert result['errors'][1].startswith("Row 4: Invalid customer_type")
        assert result['errors'][2].startswith("Row 6: Customer code 'C001' already exists")
        assert result['errors'][3].startswith("Row 8:")

        from models import Customer
        with app.app_context():
            imported = Customer.query.filter_by(customer_code='C102').one()
            assert imported.customer_name == 'Shop, With Comma'
            assert imported.customer_type == 'wholesale'
            assert float(imported.credit_limit) == 0.0

    def test_dry_run_writes_nothing(self, app, client, manager_headers, sample):
        """dry_run validates and reports without inserting."""
        from models import Customer
        content = "customer_code,customer_name,mobile_no\nC200,Dry Shop,9800000010\n"
        result = _upload(client, manager_headers, 'customers', content, dry_run=True).get_json()
        assert result['dry_run'] is True
        assert result['inserted'] == 0
        assert result['valid_rows'] == 1
        with app.app_context():
            assert Customer.query.filter_by(customer_code='C200').first() is None

    def test_missing_required_column(self, client, manager_headers):
        """A file without a required column is rejected outright."""
        response = _upload(client, manager_headers, 'customers', "customer_code,customer_name\nC1,Shop\n")
        assert response.status_code == 400
        assert 'mobile_no' in response.get_json()['error']

    def test_field_staff_forbidden(self, client, staff_headers):
        """Imports are manager only."""
        content = "customer_code,customer_name,mobile_no\nC1,Shop,9800000000\n"
        assert _upload(client, staff_headers, 'customers', content).status_code == 403


class TestProductAndPriceImport:
    """Product and price rows."""

    def test_products(self, app, client, manager_headers, sample):
        """Defaults apply and negative GST is rejected."""
        content = (
            "product_code,product_name,gst_rate\n"
            "P10,Atta 10kg,5\n"
            "P11,Sugar 1kg,-1\n"
            "P1,Duplicate,0\n"
        )
        result = _upload(client, manager_headers, 'products', content).get_json()
        assert result['inserted'] == 1
        assert len(result['errors']) == 2
        from models import Product
        with app.app_context():
            assert Product.query.filter_by(product_code='P10').one().unit_of_measure == 'pcs'

    def test_prices(self, app, client, manager_headers, sample):
        """Product must exist, tier must be valid, price numeric."""
        content = (
            "product_code,customer_type,price,discount_percentage,effective_from,effective_to\n"
            "P2,dealer,45,2,2025-01-01,\n"
            "P404,retail,10,,,\n"
            "P2,wholesale,10,,,\n"
            "P2,retail,ten,,,\n"
            "P2,distributor,40,,2025-05-01,2025-04-01\n"
        )
        result = _upload(client, manager_headers, 'prices', content).get_json()
        assert result['inserted'] == 1
        assert len(result['errors']) == 4
        assert result['errors'][0] == "Row 3: Product code 'P404' not found"

        from models import ProductPrice
        with app.app_context():
            entry = ProductPrice.query.filter_by(customer_type='dealer').one()
            assert float(entry.price) == 45.0
            assert float(entry.discount_percentage) == 2.0

    def test_xlsx_upload(self, app, client, manager_headers):
        """Excel files go through the same validation."""
        buffer = io.BytesIO()
        pd.DataFrame([['P20', 'Tea 250g', '12']], columns=['product_code', 'product_name', 'gst_rate'])\
            .to_excel(buffer, index=False, engine='openpyxl')
        response = _upload(client, manager_headers, 'products', buffer.getvalue(), filename='products.xlsx')
        assert response.status_code == 200
        assert response.get_json()['inserted'] == 1

    def test_unsupported_extension(self, client, manager_headers):
        """Only .csv and .xlsx are accepted."""
        response = _upload(client, manager_headers, 'products', "x", filename='products.txt')
        assert response.status_code == 400


class TestReadUpload:
    """File parsing."""

    def test_overlong_rows_skipped_keep_numbering(self, app):
        """A row with too many fields is dropped; later rows keep their file line numbers."""
        from import_handler import read_upload, import_rows
        content = (
            "product_code,product_name\n"
            "P30,One,extra,fields\n"
            "P31,\n"
        ).encode('utf-8')
        with app.app_context():
            df = read_upload('p.csv', content)
            result = import_rows('products', df, dry_run=True)
        assert result['valid_rows'] == 0
        assert result['errors'] == ["Row 3: Missing required fields (product_name)"]

    def test_short_rows_padded_and_validated(self, app):
        """A row with too few fields is kept and checked for missing values."""
        from import_handler import read_upload, import_rows
        content = (
            "product_code,product_name\n"
            "P32\n"
            "P33,Three\n"
        ).encode('utf-8')
        with app.app_context():
            df = read_upload('p.csv', content)
            result = import_rows('products', df, dry_run=True)
        assert result['valid_rows'] == 1
        assert result['errors'] == ["Row 2: Missing required fields (product_name)"]

    def test_headers_are_normalised(self, app):
        """Header names are trimmed and lower-cased."""
        from import_handler import read_upload
        with app.app_context():
            df = read_upload('c.csv', b" Customer_Code , CUSTOMER_NAME \nC1,Shop\n")
        assert list(df.columns) == ['customer_code', 'customer_name']
