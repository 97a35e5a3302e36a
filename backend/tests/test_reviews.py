"""
Review tests.

Verifies:
- Purchase-gated eligibility (shipped/delivered order containing the product)
- One review per account and product
- Product rating / review_count follow approved reviews
- Owner/admin edit and delete rules
- Helpful votes are idempotent
"""

import pytest

from storefront.extensions import db
from storefront.models import Order, Product, Review
from storefront.services import review_service
from conftest import place_order


def _product(product_id: int) -> Product:
    db.session.expire_all()
    return db.session.get(Product, product_id)


def _buy(client, headers, product_id: int, status: str = 'delivered') -> int:
    resp = place_order(client, headers, [{'product_id': product_id, 'quantity': 1}])
    assert resp.status_code == 201
    order_id = resp.json['data']['order']['id']
    order = db.session.get(Order, order_id)
    order.status = status
    db.session.commit()
    return order_id


def _review(client, headers, product_id: int, rating: int, **extra):
    body = {'product_id': product_id, 'rating': rating, 'comment': 'Works as described'}
    body.update(extra)
    return client.post('/api/reviews', json=body, headers=headers)


# =============================================================================
# ELIGIBILITY
# =============================================================================


class TestEligibility:

    def test_no_purchase(self, client, customer_headers, product):
        resp = _review(client, customer_headers, product.id, 5)
        assert resp.status_code == 400
        assert resp.json['error']['code'] == 'REVIEW_NOT_ALLOWED'
        assert resp.json['error']['message'] == 'User has not purchased this product'
        assert db.session.query(Review).filter_by(product_id=product.id).count() == 0
        refreshed = _product(product.id)
        assert refreshed.rating == 0
        assert refreshed.review_count == 0

    @pytest.mark.parametrize("status", ["pending", "confirmed", "processing", "cancelled"])
    def test_order_not_yet_shipped(self, client, customer_headers, product, status):
        _buy(client, customer_headers, product.id, status=status)
        resp = _review(client, customer_headers, product.id, 5)
        assert resp.status_code == 400
        assert resp.json['error']['message'] == 'User has not purchased this product'

    @pytest.mark.parametrize("status", ["shipped", "delivered"])
    def test_qualifying_order(self, client, customer_headers, product, status):
        order_id = _buy(client, customer_headers, product.id, status=status)
        resp = _review(client, customer_headers, product.id, 4, title='Nice')
        assert resp.status_code == 201
        review = resp.json['data']['review']
        assert review['order_id'] == order_id
        assert review['is_verified'] is True
        assert review['title'] == 'Nice'

    def test_second_review_rejected(self, client, customer_headers, product):
        _buy(client, customer_headers, product.id)
        assert _review(client, customer_headers, product.id, 4).status_code == 201
        resp = _review(client, customer_headers, product.id, 1)
        assert resp.status_code == 400
        assert resp.json['error']['code'] == 'REVIEW_NOT_ALLOWED'
        assert resp.json['error']['message'] == 'User has already reviewed this product'

    def test_eligibility_probe(self, client, customer_headers, product):
        resp = client.get(f'/api/reviews/eligibility/{product.id}', headers=customer_headers)
        assert resp.json['data'] == {
            'can_review': False,
            'reason': 'User has not purchased this product',
            'order_id': None,
        }

        order_id = _buy(client, customer_headers, product.id)
        resp = client.get(f'/api/reviews/eligibility/{product.id}', headers=customer_headers)
        assert resp.json['data'] == {'can_review': True, 'reason': None, 'order_id': order_id}

        resp = client.get(f'/api/products/{product.id}', headers=customer_headers)
        assert resp.json['data']['can_review'] is True

    def test_other_customers_order_does_not_count(self, client, customer_headers, other_headers, product):
        _buy(client, customer_headers, product.id)
        resp = _review(client, other_headers, product.id, 5)
        assert resp.json['error']['message'] == 'User has not purchased this product'


class TestReviewValidation:

    @pytest.fixture(autouse=True)
    def purchased(self, client, customer_headers, product):
        _buy(client, customer_headers, product.id)

    @pytest.mark.parametrize("rating", [0, 6, 3.5, "5", None])
    def test_rating_range(self, client, customer_headers, product, rating):
        resp = _review(client, customer_headers, product.id, rating)
        assert resp.status_code == 400
        assert resp.json['error']['code'] == 'INVALID_RATING'

    def test_comment_required(self, client, customer_headers, product):
        resp = _review(client, customer_headers, product.id, 5, comment='   ')
        assert resp.status_code == 400

    def test_comment_length(self, client, customer_headers, product):
        resp = _review(client, customer_headers, product.id, 5, comment='x' * 1001)
        assert resp.status_code == 400

    def test_unknown_product(self, client, customer_headers):
        resp = _review(client, customer_headers, 999999, 5)
        assert resp.status_code == 404
        assert resp.json['error']['code'] == 'PRODUCT_NOT_FOUND'


# =============================================================================
# AGGREGATES
# =============================================================================


class TestRatingAggregate:

    def test_mean_rounded_to_one_decimal(self, client, customer_headers, other_headers, admin_headers,
                                         product):
        _buy(client, customer_headers, product.id)
        _buy(client, other_headers, product.id)
        _buy(client, admin_headers, product.id)
        _review(client, customer_headers, product.id, 5)
        _review(client, other_headers, product.id, 4)
        _review(client, admin_headers, product.id, 4)

        # (5 + 4 + 4) / 3 = 4.333...
        p = _product(product.id)
        assert p.rating == 4.3
        assert p.review_count == 3

    def test_half_rounds_up(self, client, customer_headers, other_headers, product):
        _buy(client, customer_headers, product.id)
        _buy(client, other_headers, product.id)
        _review(client, customer_headers, product.id, 5)
        _review(client, other_headers, product.id, 4)
        assert _product(product.id).rating == 4.5

    def test_update_rating_recomputes(self, client, customer_headers, product):
        _buy(client, customer_headers, product.id)
        review_id = _review(client, customer_headers, product.id, 5).json['data']['review']['id']

        resp = client.put(f'/api/reviews/{review_id}', json={'rating': 2}, headers=customer_headers)
        assert resp.status_code == 200
        assert _product(product.id).rating == 2.0

    def test_delete_last_review_resets_to_zero(self, client, customer_headers, product):
        _buy(client, customer_headers, product.id)
        review_id = _review(client, customer_headers, product.id, 5).json['data']['review']['id']

        assert client.delete(f'/api/reviews/{review_id}', headers=customer_headers).status_code == 200
        p = _product(product.id)
        assert p.rating == 0
        assert p.review_count == 0

    def test_unapproved_reviews_excluded(self, client, customer_headers, other_headers, admin_headers,
                                         product):
        _buy(client, customer_headers, product.id)
        _buy(client, other_headers, product.id)
        first = _review(client, customer_headers, product.id, 5).json['data']['review']['id']
        _review(client, other_headers, product.id, 1)
        assert _product(product.id).rating == 3.0

        resp = client.put(f'/api/reviews/{first}/approval', json={'is_approved': False}, headers=admin_headers)
        assert resp.status_code == 200
        p = _product(product.id)
        assert p.rating == 1.0
        assert p.review_count == 1

        listing = client.get(f'/api/reviews/product/{product.id}').json['data']
        assert [r['rating'] for r in listing['reviews']] == [1]

    def test_refresh_is_idempotent(self, client, customer_headers, product):
        _buy(client, customer_headers, product.id)
        _review(client, customer_headers, product.id, 3)
        review_service.refresh_product_rating(product.id)
        db.session.commit()
        p = _product(product.id)
        assert (p.rating, p.review_count) == (3.0, 1)

    def test_distribution(self, client, customer_headers, other_headers, product):
        _buy(client, customer_headers, product.id)
        _buy(client, other_headers, product.id)
        _review(client, customer_headers, product.id, 5)
        _review(client, other_headers, product.id, 5)

        data = client.get(f'/api/reviews/product/{product.id}/distribution').json['data']
        assert data['distribution'] == {'5': 2, '4': 0, '3': 0, '2': 0, '1': 0}
        assert data['average_rating'] == 5.0
        assert data['total_reviews'] == 2


# =============================================================================
# OWNERSHIP / VOTES / LISTINGS
# =============================================================================


class TestReviewOwnership:

    @pytest.fixture
    def review_id(self, client, customer_headers, product):
        _buy(client, customer_headers, product.id)
        return _review(client, customer_headers, product.id, 4).json['data']['review']['id']

    def test_other_customer_cannot_edit(self, client, other_headers, review_id):
        resp = client.put(f'/api/reviews/{review_id}', json={'rating': 1}, headers=other_headers)
        assert resp.status_code == 403
        assert resp.json['error']['code'] == 'ACCESS_DENIED'

    def test_admin_cannot_edit_but_can_delete(self, client, admin_headers, review_id):
        assert client.put(f'/api/reviews/{review_id}', json={'rating': 1}, headers=admin_headers).status_code == 403
        assert client.delete(f'/api/reviews/{review_id}', headers=admin_headers).status_code == 200

    def test_other_customer_cannot_delete(self, client, other_headers, review_id):
        resp = client.delete(f'/api/reviews/{review_id}', headers=other_headers)
        assert resp.status_code == 403
        assert resp.json['error']['code'] == 'ACCESS_DENIED'

    def test_helpful_votes_idempotent(self, client, other_headers, admin_headers, review_id):
        assert client.post(f'/api/reviews/{review_id}/helpful', headers=other_headers).json['data']['helpful'] == 1
        assert client.post(f'/api/reviews/{review_id}/helpful', headers=other_headers).json['data']['helpful'] == 1
        assert client.post(f'/api/reviews/{review_id}/helpful', headers=admin_headers).json['data']['helpful'] == 2

        assert client.delete(f'/api/reviews/{review_id}/helpful', headers=other_headers).json['data']['helpful'] == 1
        assert client.delete(f'/api/reviews/{review_id}/helpful', headers=other_headers).json['data']['helpful'] == 1

    def test_cannot_vote_own_review(self, client, customer_headers, review_id):
        resp = client.post(f'/api/reviews/{review_id}/helpful', headers=customer_headers)
        assert resp.status_code == 400
        assert resp.json['error']['code'] == 'OWN_REVIEW'

    def test_my_reviews(self, client, customer_headers, other_headers, review_id):
        mine = client.get('/api/reviews/mine', headers=customer_headers).json['data']
        assert [r['id'] for r in mine['reviews']] == [review_id]
        theirs = client.get('/api/reviews/mine', headers=other_headers).json['data']
        assert theirs['reviews'] == []

    def test_product_listing_rating_filter(self, client, review_id, product):
        data = client.get(f'/api/reviews/product/{product.id}?rating=4').json['data']
        assert [r['id'] for r in data['reviews']] == [review_id]
        data = client.get(f'/api/reviews/product/{product.id}?rating=2').json['data']
        assert data['reviews'] == []
