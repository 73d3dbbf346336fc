#!/usr/bin/env python3
"""
Traffic generator for the storefront monitoring demo
Simulates shoppers browsing the catalog in different currencies and editing their carts
"""

import requests
import random
import time
import threading
from datetime import datetime

API_URL = "http://localhost:8000"

CURRENCIES = ["USD", "EUR", "GBP", "JPY", "CAD", "AUD"]
CATEGORIES = ["all", "clothing", "mens-clothing", "accessories", "makeup"]
SORTS = ["featured", "price-low-high", "price-high-low", "rating"]
SEARCHES = ["dress", "leather", "cotton", "set", "sneakers"]

CREDENTIALS = [
    {"username": "user@example.com", "password": "password123"},
    {"username": "test@example.com", "password": "test123"},
]

# Weight for actions
ACTION_WEIGHTS = {
    "browse": 0.4,
    "add_to_cart": 0.3,
    "view_cart": 0.15,
    "edit_cart": 0.1,
    "clear_cart": 0.05,
}


def get_headers(token):
    return {"Authorization": f"Bearer {token}"}


def log(message):
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] {message}")


class Shopper:
    def __init__(self, shopper_id, currency):
        self.shopper_id = shopper_id
        self.currency = currency
        self.token = None
        self.products = []

    def tag(self):
        return f"Shopper {self.shopper_id} ({self.currency})"

    def authenticate(self):
        """Log in with a demo account; about 1% of attempts use a bad password."""
        cred = dict(random.choice(CREDENTIALS))
        if random.random() < 0.01:
            cred["password"] = "wrong_password"

        try:
            response = requests.post(f"{API_URL}/auth/login", json=cred, timeout=5)
            if response.status_code == 200:
                self.token = response.json()["token"]
                log(f"{self.tag()}: Logged in as {cred['username']}")
                return True
            log(f"{self.tag()}: Login failed - {response.status_code}")
        except requests.RequestException as e:
            log(f"{self.tag()}: Login error - {e}")
        return False

    def fetch_products(self):
        params = {
            "category": random.choice(CATEGORIES),
            "sort": random.choice(SORTS),
            "currency": self.currency,
        }
        if random.random() < 0.3:
            params["max_price"] = random.choice([50, 100, 150])
        if random.random() < 0.2:
            params["search"] = random.choice(SEARCHES)

        try:
            response = requests.get(f"{API_URL}/products", params=params, timeout=5)
            if response.status_code == 200:
                products = response.json()
                if products:
                    self.products = products
                log(f"{self.tag()}: Listed {len(products)} products ({params['category']}, {params['sort']})")
                return True
        except requests.RequestException as e:
            log(f"{self.tag()}: Failed to list products - {e}")
        return False

    def browse_product(self):
        if not self.products:
            self.fetch_products()
        if not self.products:
            return False

        product = random.choice(self.products)
        try:
            response = requests.get(
                f"{API_URL}/products/{product['id']}",
                params={"currency": self.currency},
                timeout=5
            )
            if response.status_code == 200:
                log(f"{self.tag()}: Viewing {product['name']} at {response.json()['display_price']}")
                return True
        except requests.RequestException as e:
            log(f"{self.tag()}: Failed to view product - {e}")
        return False

    def add_to_cart(self):
        if not self.products:
            self.fetch_products()
        in_stock = [p for p in self.products if p.get("in_stock")]
        if not in_stock or not self.token:
            return False

        product = random.choice(in_stock)
        payload = {"product_id": product["id"], "quantity": random.randint(1, 3)}
        # Occasionally skip the size to exercise validation
        if product.get("sizes") and random.random() > 0.05:
            payload["size"] = random.choice(product["sizes"])
        if product.get("colors"):
            payload["color"] = random.choice(product["colors"])

        try:
            response = requests.post(
                f"{API_URL}/cart/items",
                json=payload,
                headers=get_headers(self.token),
                timeout=5
            )
            if response.status_code == 200:
                data = response.json()
                log(f"{self.tag()}: Added {data['product_name']} (line quantity {data['quantity']})")
                return True
            log(f"{self.tag()}: Failed to add to cart - {response.status_code}")
        except requests.RequestException as e:
            log(f"{self.tag()}: Failed to add to cart - {e}")
        return False

    def view_cart(self):
        if not self.token:
            return None
        try:
            response = requests.get(
                f"{API_URL}/cart",
                params={"currency": self.currency},
                headers=get_headers(self.token),
                timeout=5
            )
            if response.status_code == 200:
                cart = response.json()
                log(f"{self.tag()}: Cart has {cart['item_count']} items, total {cart['total_formatted']}")
                return cart
        except requests.RequestException as e:
            log(f"{self.tag()}: Failed to view cart - {e}")
        return None

    def edit_cart(self):
        cart = self.view_cart()
        if not cart or not cart["items"]:
            return False

        item = random.choice(cart["items"])
        try:
            if random.random() < 0.5:
                response = requests.patch(
                    f"{API_URL}/cart/items/{item['id']}",
                    json={"quantity": random.randint(0, 4)},
                    headers=get_headers(self.token),
                    timeout=5
                )
            else:
                response = requests.delete(
                    f"{API_URL}/cart/items/{item['id']}",
                    headers=get_headers(self.token),
                    timeout=5
                )
            log(f"{self.tag()}: Edited cart line {item['id']} - {response.status_code}")
            return response.ok
        except requests.RequestException as e:
            log(f"{self.tag()}: Failed to edit cart - {e}")
        return False

    def clear_cart(self):
        if not self.token:
            return False
        try:
            response = requests.delete(f"{API_URL}/cart", headers=get_headers(self.token), timeout=5)
            log(f"{self.tag()}: Cleared cart - {response.status_code}")
            return response.ok
        except requests.RequestException as e:
            log(f"{self.tag()}: Failed to clear cart - {e}")
        return False

    def random_action(self):
        action = random.choices(
            list(ACTION_WEIGHTS.keys()),
            weights=list(ACTION_WEIGHTS.values())
        )[0]

        if action == "browse":
            return self.browse_product()
        elif action == "add_to_cart":
            return self.add_to_cart()
        elif action == "view_cart":
            return self.view_cart() is not None
        elif action == "edit_cart":
            return self.edit_cart()
        elif action == "clear_cart":
            return self.clear_cart()


def shopper_session(shopper_id, currency, duration_seconds, shopper_type="browser"):
    """
    Simulate a shopper session

    shopper_type:
    - "browser": Only browses the catalog (50%)
    - "cart_abandoner": Fills a cart and leaves (30%)
    - "cart_editor": Adds, edits and clears cart lines (20%)
    """
    shopper = Shopper(shopper_id, currency)
    end_time = time.time() + duration_seconds

    shopper.fetch_products()
    for _ in range(random.randint(2, 5)):
        shopper.browse_product()
        time.sleep(random.uniform(0.5, 1.5))

    if shopper_type == "browser":
        while time.time() < end_time:
            if random.random() < 0.3:
                shopper.fetch_products()
            else:
                shopper.browse_product()
            time.sleep(random.uniform(0.3, 0.8))
        return

    shopper.authenticate()
    time.sleep(random.uniform(0.2, 0.5))
    for _ in range(random.randint(1, 3)):
        shopper.add_to_cart()
        time.sleep(random.uniform(0.3, 0.8))

    while time.time() < end_time:
        if shopper_type == "cart_abandoner":
            if random.random() < 0.5:
                shopper.browse_product()
            else:
                shopper.view_cart()
        else:
            shopper.random_action()
        time.sleep(random.uniform(0.5, 1.5))


def generate_traffic(num_concurrent_shoppers=5, session_duration=60):
    """Generate traffic with multiple concurrent shoppers"""
    log(f"Starting traffic generation with {num_concurrent_shoppers} concurrent shoppers")
    log(f"Session duration: {session_duration} seconds")
    log("Shopper mix: 50% browsers, 30% cart abandoners, 20% cart editors")

    threads = []
    currency_index = 0

    try:
        while True:
            while len([t for t in threads if t.is_alive()]) < num_concurrent_shoppers:
                # Round-robin so every display currency gets traffic
                currency = CURRENCIES[currency_index % len(CURRENCIES)]
                currency_index += 1

                shopper_id = f"shopper_{random.randint(1000, 9999)}"

                rand = random.random()
                if rand < 0.50:
                    shopper_type = "browser"
                elif rand < 0.80:
                    shopper_type = "cart_abandoner"
                else:
                    shopper_type = "cart_editor"

                thread = threading.Thread(
                    target=shopper_session,
                    args=(shopper_id, currency, session_duration, shopper_type)
                )
                thread.start()
                threads.append(thread)

                time.sleep(random.uniform(1, 3))

            threads = [t for t in threads if t.is_alive()]
            time.sleep(5)

    except KeyboardInterrupt:
        log("Stopping traffic generation...")
        log("Waiting for active sessions to complete...")
        for thread in threads:
            thread.join(timeout=10)
        log("Traffic generation stopped")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Generate traffic for the storefront service")
    parser.add_argument(
        "--users",
        type=int,
        default=5,
        help="Number of concurrent shoppers (default: 5)"
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=60,
        help="Session duration in seconds (default: 60)"
    )
    parser.add_argument(
        "--url",
        type=str,
        default="http://localhost:8000",
        help="API URL (default: http://localhost:8000)"
    )

    args = parser.parse_args()
    API_URL = args.url

    log("=" * 60)
    log("Storefront Traffic Generator")
    log("=" * 60)
    log(f"API URL: {API_URL}")
    log(f"Concurrent Shoppers: {args.users}")
    log(f"Session Duration: {args.duration}s")
    log("=" * 60)

    generate_traffic(args.users, args.duration)
