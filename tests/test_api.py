import unittest
from unittest import mock

from bson import ObjectId
from fastapi.testclient import TestClient

from auth import COOKIE_NAME
from config import Settings
from database import Database
from main import create_app
from support import JPEG, big_file, login_as_admin, make_app

DOG_FOOD = {
    "name": "Premium Dog Food",
    "image": "https://res.cloudinary.com/demo/dog-food.jpg",
    "price": 1850,
    "originalPrice": 2200,
    "rating": 4.5,
    "category": "Pet Food",
    "inStock": True,
}


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.app, self.db, self.uploader = make_app()
        self.client = TestClient(self.app)

    def admin(self):
        login_as_admin(self.client, self.app)
        return self.client


class AuthRoutesTestCase(ApiTestCase):
    def test_login_sets_session_cookie(self):
        with mock.patch.object(self.app.state.tokens, "verify_external_assertion", return_value=True):
            res = self.client.post("/api/auth/login", json={"idToken": "provider-token"})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"success": True})
        cookie = res.headers["set-cookie"].lower()
        self.assertIn(COOKIE_NAME, cookie)
        self.assertIn("httponly", cookie)
        self.assertIn("samesite=lax", cookie)
        self.assertIn("max-age=604800", cookie)
        self.assertNotIn("; secure", cookie)
        self.assertEqual(self.client.get("/api/auth/verify").json(), {"authenticated": True})

    def test_login_requires_token(self):
        res = self.client.post("/api/auth/login", json={})
        self.assertEqual(res.status_code, 400)

    def test_login_with_rejected_assertion(self):
        with mock.patch.object(self.app.state.tokens, "verify_external_assertion", return_value=False):
            res = self.client.post("/api/auth/login", json={"idToken": "forged"})
        self.assertEqual(res.status_code, 401)
        self.assertNotIn("set-cookie", res.headers)

    def test_verify_without_cookie(self):
        res = self.client.get("/api/auth/verify")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json(), {"authenticated": False})

    def test_verify_with_bad_cookie(self):
        self.client.cookies.set(COOKIE_NAME, "bogus")
        res = self.client.get("/api/auth/verify")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"authenticated": False})

    def test_logout_clears_cookie(self):
        res = self.admin().post("/api/auth/logout")
        self.assertEqual(res.status_code, 200)
        self.assertIn(COOKIE_NAME, res.headers["set-cookie"])
        self.assertIn("max-age=0", res.headers["set-cookie"].lower())

    def test_production_cookie_is_secure(self):
        settings = Settings(jwt_secret="s", firebase_project_id="p", environment="production")
        app = create_app(settings, database=self.db, images=self.app.state.images)
        client = TestClient(app, base_url="https://testserver")
        with mock.patch.object(app.state.tokens, "verify_external_assertion", return_value=True):
            res = client.post("/api/auth/login", json={"idToken": "provider-token"})
        self.assertIn("secure", res.headers["set-cookie"].lower())


class RouteGuardTestCase(ApiTestCase):
    def test_dashboard_redirects_to_login_without_session(self):
        res = self.client.get("/admin/products", follow_redirects=False)
        self.assertEqual(res.status_code, 307)
        self.assertEqual(res.headers["location"], "/admin")

    def test_login_page_forwards_signed_in_admin(self):
        res = self.admin().get("/admin", follow_redirects=False)
        self.assertEqual(res.status_code, 307)
        self.assertEqual(res.headers["location"], "/admin/products")
        self.assertEqual(self.client.get("/admin/products", follow_redirects=False).status_code, 200)

    def test_login_page_is_served_to_visitors(self):
        self.assertEqual(self.client.get("/admin", follow_redirects=False).status_code, 200)


class ProductRoutesTestCase(ApiTestCase):
    def test_admin_routes_reject_missing_session_without_writing(self):
        res = self.client.post("/api/admin/products", json=DOG_FOOD)
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["detail"], "Unauthorized")
        self.assertEqual(self.db.count_documents("products"), 0)
        for method, path in [
            ("GET", "/api/admin/products"),
            ("PUT", f"/api/admin/products/{ObjectId()}"),
            ("DELETE", f"/api/admin/products/{ObjectId()}"),
            ("PATCH", f"/api/admin/bookings/{ObjectId()}"),
            ("DELETE", f"/api/admin/featured-images/{ObjectId()}"),
        ]:
            self.assertEqual(self.client.request(method, path, json={"booked": True}).status_code, 401, path)

    def test_admin_routes_reject_tampered_session(self):
        token = self.app.state.tokens.issue_session_token()
        self.client.cookies.set(COOKIE_NAME, token[:-3] + "xyz")
        res = self.client.post("/api/admin/products", json=DOG_FOOD)
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["detail"], "Invalid or expired session")
        self.assertEqual(self.db.count_documents("products"), 0)

    def test_create_computes_discount(self):
        res = self.admin().post("/api/admin/products", json=DOG_FOOD)
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertTrue(body["success"])
        product = self.client.get(f"/api/admin/products/{body['id']}").json()
        self.assertEqual(product["discount"], 16)
        self.assertEqual(product["wishlist"], 0)
        self.assertEqual(product["originalPrice"], 2200)

    def test_create_validation_is_400(self):
        client = self.admin()
        res = client.post("/api/admin/products", json={**DOG_FOOD, "originalPrice": 1000})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["detail"], "originalPrice must be >= price")
        self.assertEqual(client.post("/api/admin/products", json={**DOG_FOOD, "price": 0}).status_code, 400)
        self.assertEqual(client.post("/api/admin/products", json={**DOG_FOOD, "rating": 7}).status_code, 400)
        self.assertEqual(self.db.count_documents("products"), 0)

    def test_non_finite_prices_are_400(self):
        client = self.admin()
        headers = {"content-type": "application/json"}
        body = b'{"name": "X", "image": "u", "price": 1, "originalPrice": 1e400}'
        res = client.post("/api/admin/products", content=body, headers=headers)
        self.assertEqual(res.status_code, 400)
        self.assertEqual(self.db.count_documents("products"), 0)

        product_id = client.post("/api/admin/products", json=DOG_FOOD).json()["id"]
        res = client.put(f"/api/admin/products/{product_id}", content=b'{"price": NaN}', headers=headers)
        self.assertEqual(res.status_code, 400)
        self.assertEqual(client.get(f"/api/admin/products/{product_id}").json()["price"], 1850)

    def test_update_and_delete(self):
        client = self.admin()
        product_id = client.post("/api/admin/products", json=DOG_FOOD).json()["id"]
        res = client.put(f"/api/admin/products/{product_id}", json={"price": 1650})
        self.assertEqual(res.json(), {"success": True})
        self.assertEqual(client.get(f"/api/admin/products/{product_id}").json()["discount"], 25)

        self.assertEqual(client.put(f"/api/admin/products/{product_id}", json={"price": 9999}).status_code, 400)
        self.assertEqual(client.delete(f"/api/admin/products/{product_id}").json(), {"success": True})
        self.assertEqual(client.delete(f"/api/admin/products/{product_id}").status_code, 404)
        self.assertEqual(client.put(f"/api/admin/products/{product_id}", json={"name": "x"}).status_code, 404)

    def test_list_routes(self):
        client = self.admin()
        client.post("/api/admin/products", json=DOG_FOOD)
        self.assertEqual(len(client.get("/api/admin/products").json()["products"]), 1)
        self.assertEqual(len(self.client.get("/api/products").json()["products"]), 1)

    def test_seed(self):
        res = self.admin().post("/api/admin/products/seed", json={"products": [
            {"name": "Chew Toy", "price": 200, "originalPrice": 250},
            {"name": "Cat Litter", "price": 450, "originalPrice": 500, "category": "Accessories"},
        ]})
        self.assertEqual(res.json(), {"success": True, "count": 2})
        self.assertEqual(self.db.count_documents("products"), 2)

    def test_store_not_configured(self):
        app, _, _ = make_app(database=Database())
        client = TestClient(app)
        login_as_admin(client, app)
        res = client.post("/api/admin/products", json=DOG_FOOD)
        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.json()["detail"], "Database not configured")


class WishlistRoutesTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.product_id = self.admin().post("/api/admin/products", json=DOG_FOOD).json()["id"]
        self.client.cookies.clear()

    def wishlist(self):
        login_as_admin(self.client, self.app)
        return self.client.get(f"/api/admin/products/{self.product_id}").json()["wishlist"]

    def test_add_then_remove_round_trips(self):
        self.assertEqual(self.client.post("/api/wishlist", json={"productId": self.product_id, "action": "add"}).status_code, 200)
        self.assertEqual(self.wishlist(), 1)
        self.client.post("/api/wishlist", json={"productId": self.product_id, "action": "remove"})
        self.assertEqual(self.wishlist(), 0)

    def test_invalid_requests(self):
        self.assertEqual(self.client.post("/api/wishlist", json={"productId": self.product_id, "action": "toggle"}).status_code, 400)
        self.assertEqual(self.client.post("/api/wishlist", json={"action": "add"}).status_code, 400)
        self.assertEqual(self.client.post("/api/wishlist", json={"productId": "nope", "action": "add"}).status_code, 400)
        self.assertEqual(self.client.post("/api/wishlist", json={"productId": str(ObjectId()), "action": "add"}).status_code, 404)


class BookingRoutesTestCase(ApiTestCase):
    ASHA = {"name": "Asha", "phone": "9800000000", "purpose": "Vaccination", "isEmergency": True}

    def test_public_booking_starts_pending(self):
        res = self.client.post("/api/bookings", json={**self.ASHA, "booked": True})
        self.assertEqual(res.status_code, 201)
        self.assertTrue(res.json()["success"])
        [booking] = self.client.get("/api/bookings").json()["bookings"]
        self.assertEqual(booking["id"], res.json()["id"])
        self.assertFalse(booking["booked"])
        self.assertTrue(booking["isEmergency"])

    def test_booking_validation(self):
        res = self.client.post("/api/bookings", json={"name": "Asha", "phone": "9800000000"})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["detail"], "Purpose is required")
        self.assertEqual(self.db.count_documents("bookings"), 0)

    def test_free_form_email_is_accepted(self):
        res = self.client.post("/api/bookings", json={**self.ASHA, "email": " asha@clinic "})
        self.assertEqual(res.status_code, 201)
        [booking] = self.client.get("/api/bookings").json()["bookings"]
        self.assertEqual(booking["email"], "asha@clinic")

    def test_admin_toggle_and_delete(self):
        booking_id = self.client.post("/api/bookings", json=self.ASHA).json()["id"]
        client = self.admin()
        self.assertEqual(client.patch(f"/api/admin/bookings/{booking_id}", json={"booked": True}).status_code, 200)
        self.assertTrue(client.get("/api/bookings").json()["bookings"][0]["booked"])
        self.assertEqual(client.delete(f"/api/admin/bookings/{booking_id}").status_code, 200)
        self.assertEqual(client.delete(f"/api/admin/bookings/{booking_id}").status_code, 404)


class UploadRoutesTestCase(ApiTestCase):
    def test_public_product_upload(self):
        res = self.client.post("/api/upload", files={"file": ("dog.jpg", JPEG, "image/jpeg")})
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(set(body), {"url", "publicId", "width", "height"})
        self.assertEqual(self.uploader.uploads[0]["folder"], "curavet/products")

    def test_upload_rejects_non_image_and_missing_file(self):
        res = self.client.post("/api/upload", files={"file": ("notes.txt", b"hello", "text/plain")})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["detail"], "File must be an image")
        self.assertEqual(self.client.post("/api/upload").status_code, 400)
        self.assertEqual(self.uploader.uploads, [])

    def test_upload_store_failure(self):
        self.uploader.fail_upload = True
        res = self.client.post("/api/upload", files={"file": ("dog.jpg", JPEG, "image/jpeg")})
        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.json()["detail"], "Failed to upload image")

    def test_admin_upload_requires_session(self):
        files = {"file": ("dog.jpg", JPEG, "image/jpeg")}
        self.assertEqual(self.client.post("/api/admin/upload", files=files).status_code, 401)
        res = self.admin().post("/api/admin/upload", files=files)
        self.assertEqual(set(res.json()), {"url", "publicId"})


class FeaturedImageRoutesTestCase(ApiTestCase):
    def test_admin_upload_writes_document_in_order(self):
        client = self.admin()
        first = client.post("/api/admin/featured-images", files={"file": ("a.jpg", JPEG, "image/jpeg")}, data={"alt": "Front desk"}).json()
        second = client.post("/api/admin/featured-images", files={"file": ("b.jpg", JPEG, "image/jpeg")}).json()
        self.assertEqual((first["order"], second["order"]), (0, 1))
        self.assertEqual(second["alt"], "Curavet Pet Clinic")
        images = self.client.get("/api/featured-images").json()["images"]
        self.assertEqual([i["id"] for i in images], [first["id"], second["id"]])
        self.assertEqual(self.uploader.uploads[0]["folder"], "curavet/hero")

    def test_oversized_hero_is_rejected_without_side_effects(self):
        res = self.admin().post("/api/admin/featured-images", files={"file": ("huge.jpg", big_file(12), "image/jpeg")})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["detail"], "Image must be less than 10MB")
        self.assertEqual(self.uploader.uploads, [])
        self.assertEqual(self.db.count_documents("featured_images"), 0)

    def test_delete_tolerates_missing_blob(self):
        client = self.admin()
        image = client.post("/api/admin/featured-images", files={"file": ("a.jpg", JPEG, "image/jpeg")}).json()
        self.uploader.fail_destroy = True
        res = client.delete(f"/api/admin/featured-images/{image['id']}")
        self.assertEqual(res.json(), {"success": True})
        self.assertEqual(self.uploader.destroyed, [image["publicId"]])
        self.assertEqual(self.db.count_documents("featured_images"), 0)
        self.assertEqual(client.delete(f"/api/admin/featured-images/{image['id']}").status_code, 404)

    def test_update_alt(self):
        client = self.admin()
        image = client.post("/api/admin/featured-images", files={"file": ("a.jpg", JPEG, "image/jpeg")}).json()
        client.patch(f"/api/admin/featured-images/{image['id']}", json={"alt": "Surgery room"})
        self.assertEqual(client.get("/api/featured-images").json()["images"][0]["alt"], "Surgery room")

    def test_public_upload_and_blob_delete(self):
        res = self.client.post("/api/featured-images", files={"file": ("a.jpg", JPEG, "image/jpeg")})
        self.assertEqual(set(res.json()), {"url", "publicId", "width", "height"})
        self.assertEqual(self.db.count_documents("featured_images"), 0)
        self.uploader.fail_destroy = True
        res = self.client.request("DELETE", "/api/featured-images", json={"publicId": res.json()["publicId"]})
        self.assertEqual(res.json(), {"success": True})


class HealthTestCase(ApiTestCase):
    def test_health(self):
        body = self.client.get("/health").json()
        self.assertEqual(body["backend"], "running")
        self.assertEqual(body["database"], "connected")
        self.assertEqual(body["images"], "configured")


class ShutdownTestCase(unittest.TestCase):
    def test_shutdown_closes_key_client(self):
        app, _, _ = make_app()
        with TestClient(app):
            self.assertFalse(app.state.tokens._http.is_closed)
        self.assertTrue(app.state.tokens._http.is_closed)


if __name__ == "__main__":
    unittest.main()
