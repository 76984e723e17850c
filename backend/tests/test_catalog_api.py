# Overview: Pytest coverage for product and customer master data endpoints.

from decimal import Decimal

from lumberpos.models import Inventory, Product

from helpers import movements_for


class TestProducts:

    def test_create_product_creates_empty_stock_row(self, client, db_session, category):
        response = client.post('/api/products', json={
            "name": "Pine Board 2.5x20x300cm",
            "unit": "metre",
            "price": 25.9,
            "cost": "18.50",
            "category_id": category.id,
            "barcode": "7890000000011",
            "dimensions": "2.5 x 20 x 300",
        })

        assert response.status_code == 201
        product = response.json["product"]
        assert product["price"] == 25.9
        assert product["category_name"] == "Sawn Timber"
        assert product["quantity"] == 0.0
        assert product["location"] == "Main Warehouse"

        inventory = db_session.query(Inventory).filter_by(product_id=product["id"]).one()
        assert inventory.quantity == Decimal("0")
        assert movements_for(product["id"]) == []

    def test_required_fields_and_rules(self, client, db_session):
        assert client.post('/api/products', json={"name": "Board"}).status_code == 400
        assert client.post('/api/products', json={"name": "Board", "unit": "m", "price": -1}).status_code == 400
        assert client.post('/api/products', json={"name": "Board", "unit": "m", "price": "1.999"}).status_code == 400
        assert client.post('/api/products', json={"name": "", "unit": "m", "price": 1}).status_code == 400
        assert client.post('/api/products', json={"name": "Board", "unit": "m", "price": 1, "id": 3}).status_code == 400
        assert db_session.query(Product).count() == 0

    def test_unknown_category_is_404(self, client, db_session):
        response = client.post('/api/products', json={"name": "Board", "unit": "m", "price": 1, "category_id": 999})
        assert response.status_code == 404

    def test_duplicate_barcode_is_409(self, client, db_session, make_product):
        make_product(barcode="7890000000011")
        response = client.post('/api/products', json={
            "name": "Other Board", "unit": "m", "price": 1, "barcode": "7890000000011",
        })
        assert response.status_code == 409

    def test_update_product(self, client, db_session, product):
        response = client.put(f'/api/products/{product.id}', json={"price": "27.40", "description": "Kiln dried"})

        assert response.status_code == 200
        assert response.json["product"]["price"] == 27.4
        assert response.json["product"]["quantity"] == 100.0
        assert client.put('/api/products/99999', json={"price": 1}).status_code == 404

    def test_price_change_does_not_touch_sold_items(self, client, db_session, product):
        sale_id = client.post('/api/sales', json={
            "items": [{"product_id": product.id, "quantity": 1}],
            "payment_method": "cash",
        }).json["sale"]["id"]
        client.put(f'/api/products/{product.id}', json={"price": 99})

        item = client.get(f'/api/sales/{sale_id}').json["sale"]["items"][0]
        assert item["unit_price"] == 25.9

    def test_soft_delete(self, client, db_session, product):
        response = client.delete(f'/api/products/{product.id}')
        assert response.status_code == 200

        assert client.get('/api/products').json["count"] == 0
        inactive = client.get('/api/products?active=false').json
        assert [p["id"] for p in inactive["items"]] == [product.id]

        sale = client.post('/api/sales', json={
            "items": [{"product_id": product.id, "quantity": 1}],
            "payment_method": "cash",
        })
        assert sale.status_code == 404

    def test_list_search_and_category(self, client, db_session, make_product, category):
        make_product(name="Pine Board", category_id=category.id)
        make_product(name="Marine Plywood", description="Sheet for boats", unit="m2")

        assert client.get('/api/products').json["count"] == 2
        assert client.get('/api/products?search=boats').json["items"][0]["name"] == "Marine Plywood"
        by_category = client.get(f'/api/products?category_id={category.id}').json
        assert [p["name"] for p in by_category["items"]] == ["Pine Board"]

    def test_get_product(self, client, db_session, product):
        response = client.get(f'/api/products/{product.id}')
        assert response.status_code == 200
        assert response.json["min_stock"] == 10.0
        assert client.get('/api/products/99999').status_code == 404

    def test_categories(self, client, db_session, category):
        response = client.get('/api/products/categories')
        assert response.status_code == 200
        assert response.json["items"] == [
            {"id": category.id, "name": "Sawn Timber", "description": "Boards, beams and battens"}
        ]


class TestCustomers:

    def test_create_and_get(self, client, db_session):
        response = client.post('/api/customers', json={
            "name": "Joana Ribeiro",
            "email": "joana@example.com",
            "phone": "",
            "city": "Curitiba",
        })

        assert response.status_code == 201
        customer = response.json["customer"]
        assert customer["customer_type"] == "individual"
        assert customer["phone"] is None

        fetched = client.get(f"/api/customers/{customer['id']}")
        assert fetched.status_code == 200
        assert fetched.json["city"] == "Curitiba"

    def test_validation(self, client, db_session):
        assert client.post('/api/customers', json={}).status_code == 400
        assert client.post('/api/customers', json={"name": "X", "customer_type": "vip"}).status_code == 400
        assert client.post('/api/customers', json={"name": "X", "email": "not-an-email"}).status_code == 400

    def test_duplicate_email_or_tax_id_is_409(self, client, db_session, customer):
        dup_email = client.post('/api/customers', json={"name": "Other", "email": "silva@example.com"})
        dup_tax_id = client.post('/api/customers', json={"name": "Other", "tax_id": "12345678000190"})
        assert dup_email.status_code == 409
        assert dup_tax_id.status_code == 409

    def test_update_and_deactivate(self, client, db_session, customer):
        response = client.put(f'/api/customers/{customer.id}', json={"phone": "+55 41 99999-0000"})
        assert response.status_code == 200
        assert response.json["customer"]["phone"] == "+55 41 99999-0000"

        assert client.delete(f'/api/customers/{customer.id}').status_code == 200
        assert client.get('/api/customers').json["count"] == 0
        assert client.get('/api/customers?active=false').json["count"] == 1
        assert client.delete('/api/customers/99999').status_code == 404

    def test_search(self, client, db_session, customer):
        assert client.get('/api/customers?search=silva').json["count"] == 1
        assert client.get('/api/customers?search=nobody').json["count"] == 0

    def test_purchases(self, client, db_session, customer, product):
        client.post('/api/sales', json={
            "items": [{"product_id": product.id, "quantity": 2}],
            "payment_method": "bank_slip",
            "customer_id": customer.id,
        })
        client.post('/api/sales', json={
            "items": [{"product_id": product.id, "quantity": 1}],
            "payment_method": "cash",
        })

        purchases = client.get(f'/api/customers/{customer.id}/purchases').json
        assert purchases["count"] == 1
        assert purchases["items"][0]["payment_method"] == "bank_slip"
        assert client.get('/api/customers/99999/purchases').status_code == 404
