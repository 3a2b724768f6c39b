def test_create_category_and_reject_duplicate(client, canteen_owner):
    _, headers = canteen_owner

    response = client.post('/api/canteen/categories', json={'name': 'Beverages'}, headers=headers)
    assert response.status_code == 201
    assert response.get_json()['data']['icon'] == '🍽️'

    response = client.post('/api/canteen/categories', json={'name': 'Beverages'}, headers=headers)
    assert response.status_code == 409

    names = [c['name'] for c in client.get('/api/canteen/categories').get_json()['data']]
    assert names == ['Beverages']


def test_students_cannot_manage_menu(client, student, category):
    _, headers = student
    response = client.post('/api/canteen/menu', json={
        'name': 'Tea', 'price': 10, 'category': str(category['_id'])
    }, headers=headers)
    assert response.status_code == 403


def test_create_menu_item(client, canteen_owner, category):
    _, headers = canteen_owner
    response = client.post('/api/canteen/menu', json={
        'name': 'Cold Coffee',
        'price': 45,
        'originalPrice': 60,
        'category': str(category['_id']),
        'tags': ['popular'],
        'stock': 10,
    }, headers=headers)

    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['discountPercentage'] == 25
    assert data['stockStatus'] == 'in_stock'
    assert data['category'] == str(category['_id'])


def test_create_menu_item_validates(client, canteen_owner, category):
    _, headers = canteen_owner
    response = client.post('/api/canteen/menu', json={
        'name': 'Bad', 'price': -1, 'category': 'xyz', 'stock': -5
    }, headers=headers)

    assert response.status_code == 400
    fields = {detail['field'] for detail in response.get_json()['details']}
    assert {'price', 'category', 'stock'} <= fields


def test_menu_listing_filters_sorts_and_hides_out_of_stock(client, make_item):
    make_item('Samosa', 15)
    make_item('Paneer Roll', 70, stock=0)
    make_item('Veg Burger', 50, stock=3)
    make_item('Hidden', 20, isAvailable=False)

    body = client.get('/api/canteen/menu?sortBy=price_high').get_json()
    assert [item['name'] for item in body['data']] == ['Veg Burger', 'Samosa']
    assert body['pagination'] == {'current': 1, 'pages': 1, 'total': 2, 'limit': 20}

    body = client.get('/api/canteen/menu?includeOutOfStock=true&sortBy=price_low').get_json()
    assert [item['name'] for item in body['data']] == ['Samosa', 'Veg Burger', 'Paneer Roll']

    body = client.get('/api/canteen/menu?search=burger').get_json()
    assert [item['name'] for item in body['data']] == ['Veg Burger']

    body = client.get('/api/canteen/menu?minPrice=20&maxPrice=60').get_json()
    assert [item['name'] for item in body['data']] == ['Veg Burger']


def test_menu_pagination(client, make_item):
    for n in range(5):
        make_item(f'Item {n}', 10 + n)

    body = client.get('/api/canteen/menu?limit=2&page=3&sortBy=price_low').get_json()
    assert [item['name'] for item in body['data']] == ['Item 4']
    assert body['pagination']['pages'] == 3


def test_soft_delete_hides_item(client, canteen_owner, make_item):
    _, headers = canteen_owner
    item = make_item('Samosa', 15)

    assert client.delete(f"/api/canteen/menu/{item['_id']}", headers=headers).status_code == 200
    assert client.get(f"/api/canteen/menu/{item['_id']}").status_code == 404
    assert client.get('/api/canteen/menu').get_json()['data'] == []


def test_update_menu_item(client, canteen_owner, make_item):
    _, headers = canteen_owner
    item = make_item('Samosa', 15)

    response = client.put(f"/api/canteen/menu/{item['_id']}", json={'price': 12, 'stock': 4}, headers=headers)
    data = response.get_json()['data']
    assert data['price'] == 12
    assert data['originalPrice'] == 15
    assert data['stockStatus'] == 'low_stock'


def test_rate_menu_item_and_popular(client, repos, student, make_item):
    _, headers = student
    item = make_item('Samosa', 15)
    make_item('Tea', 10)

    client.post(f"/api/canteen/menu/{item['_id']}/rate", json={'rating': 5}, headers=headers)
    response = client.post(f"/api/canteen/menu/{item['_id']}/rate", json={'rating': 4}, headers=headers)
    assert response.get_json()['data']['rating'] == {'average': 4.5, 'count': 2}

    repos.menu_items.reserve(item['_id'], 3)
    popular = client.get('/api/canteen/menu/popular').get_json()['data']
    assert [p['name'] for p in popular] == ['Samosa']

    recommended = client.get('/api/canteen/menu/recommendations', headers=headers).get_json()['data']
    assert [r['name'] for r in recommended] == ['Samosa']


def test_invalid_id_is_validation_error(client):
    response = client.get('/api/canteen/menu/not-an-id')
    assert response.status_code == 400
    assert response.get_json()['code'] == 'VALIDATION_ERROR'
