import unittest
from unittest.mock import patch

from support import PNG_DATA_URL, ApiTestCase, add_blog_category, add_blog_post, add_blog_tag

from Models import BlogCategory, BlogPost, BlogTag
from Services import blog_category_router, blog_post_router
from Services.blog_post_router import resolve_published_at
from Services.revalidation import page_cache


class TestBlogCategories(ApiTestCase):
    def test_create_normalizes_slug(self) -> None:
        res = self.client.post(
            "/api/admin/blog/categories",
            json={"name": "Travel Tips", "slug": "Travel Tips", "description": ""},
            headers=self.admin_headers,
        )
        self.assertEqual(res.status_code, 201, res.text)
        body = res.json()
        self.assertEqual(body["slug"], "travel-tips")
        self.assertIsNone(body["description"])
        self.assertIsNone(body["sort_order"])
        self.assertTrue(page_cache.was_revalidated("path", "/admin/blog/categories"))
        self.assertTrue(page_cache.was_revalidated("tag", "blog-categories"))

    def test_create_with_image(self) -> None:
        res = self.client.post(
            "/api/admin/blog/categories",
            json={"name": "Guides", "image_base64": PNG_DATA_URL},
            headers=self.admin_headers,
        )
        self.assertEqual(res.status_code, 201, res.text)
        self.assertIn("/uploads/blog/categories/guides-", res.json()["image_url"])

    def test_duplicate_slug_conflicts(self) -> None:
        add_blog_category(self.db, "Travel Tips")
        self.db.commit()
        res = self.client.post("/api/admin/blog/categories", json={"name": "Travel tips"},
                               headers=self.admin_headers)
        self.assertEqual(res.status_code, 409)

    def test_conflict_is_caught_before_upload(self) -> None:
        add_blog_category(self.db, "Travel Tips")
        self.db.commit()
        with patch.object(blog_category_router, "upload_image") as upload:
            res = self.client.post("/api/admin/blog/categories",
                                   json={"name": "Travel tips", "image_base64": PNG_DATA_URL},
                                   headers=self.admin_headers)
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["detail"], "A category with this slug already exists")
        upload.assert_not_called()

    def test_delete_guard_keeps_row(self) -> None:
        category = add_blog_category(self.db, "News")
        add_blog_post(self.db, "First", category_id=category.id)
        add_blog_post(self.db, "Second", category_id=category.id)
        self.db.commit()
        category_id = category.id

        res = self.client.delete(f"/api/admin/blog/categories/{category_id}", headers=self.admin_headers)
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["detail"], "Cannot delete category. 2 blog posts use this category.")
        self.assertIsNotNone(self.fetch(BlogCategory, category_id))

    def test_delete_unused(self) -> None:
        category_id = add_blog_category(self.db, "Empty").id
        self.db.commit()
        res = self.client.delete(f"/api/admin/blog/categories/{category_id}", headers=self.admin_headers)
        self.assertEqual(res.status_code, 204)
        self.assertIsNone(self.fetch(BlogCategory, category_id))

    def test_list_order_and_counts(self) -> None:
        b = add_blog_category(self.db, "Beta", sort_order=2)
        add_blog_category(self.db, "Alpha", sort_order=2)
        add_blog_category(self.db, "Zulu", sort_order=1)
        add_blog_category(self.db, "Unsorted")
        add_blog_post(self.db, "Post", category_id=b.id)
        self.db.commit()

        res = self.client.get("/api/admin/blog/categories", headers=self.admin_headers)
        items = res.json()["items"]
        self.assertEqual([c["name"] for c in items], ["Zulu", "Alpha", "Beta", "Unsorted"])
        self.assertEqual({c["name"]: c["post_count"] for c in items}["Beta"], 1)

    def test_active_filter_and_toggle(self) -> None:
        category_id = add_blog_category(self.db, "Live").id
        add_blog_category(self.db, "Hidden", is_active=False)
        self.db.commit()

        res = self.client.get("/api/admin/blog/categories?is_active=false", headers=self.admin_headers)
        self.assertEqual([c["name"] for c in res.json()["items"]], ["Hidden"])

        res = self.client.patch(f"/api/admin/blog/categories/{category_id}/status", json={},
                                headers=self.admin_headers)
        self.assertFalse(res.json()["is_active"])

        res = self.client.get("/api/admin/blog/categories/all", headers=self.admin_headers)
        self.assertEqual(res.json(), [])


class TestBlogTags(ApiTestCase):
    def test_create_and_rename(self) -> None:
        res = self.client.post("/api/admin/blog/tags", json={"name": "Airport Transfers"},
                               headers=self.admin_headers)
        self.assertEqual(res.status_code, 201, res.text)
        tag_id = res.json()["id"]
        self.assertEqual(res.json()["slug"], "airport-transfers")

        res = self.client.put(f"/api/admin/blog/tags/{tag_id}", json={"name": "Airports"},
                              headers=self.admin_headers)
        self.assertEqual(res.json()["slug"], "airports")
        self.assertTrue(page_cache.was_revalidated("tag", "blog-tags"))

    def test_delete_guard(self) -> None:
        tag = add_blog_tag(self.db, "Tips")
        add_blog_post(self.db, "Tagged", tags=[tag])
        self.db.commit()
        tag_id = tag.id

        res = self.client.delete(f"/api/admin/blog/tags/{tag_id}", headers=self.admin_headers)
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["detail"], "Cannot delete tag. 1 blog posts use this tag.")
        self.assertIsNotNone(self.fetch(BlogTag, tag_id))

    def test_list_counts(self) -> None:
        tag = add_blog_tag(self.db, "Beaches")
        add_blog_tag(self.db, "Airports")
        add_blog_post(self.db, "One", tags=[tag])
        self.db.commit()

        res = self.client.get("/api/admin/blog/tags", headers=self.admin_headers)
        items = res.json()["items"]
        self.assertEqual([t["name"] for t in items], ["Airports", "Beaches"])
        self.assertEqual(items[1]["post_count"], 1)


class TestPublishedAt(unittest.TestCase):
    def test_stamped_on_first_publish_only(self) -> None:
        self.assertIsNone(resolve_published_at("draft", None))
        stamped = resolve_published_at("published", None)
        self.assertIsNotNone(stamped)
        self.assertIs(resolve_published_at("published", stamped), stamped)
        self.assertIs(resolve_published_at("archived", stamped), stamped)


class TestBlogPosts(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.category_id = add_blog_category(self.db, "News").id
        self.tag_ids = [add_blog_tag(self.db, "Airports").id, add_blog_tag(self.db, "Tips").id]
        self.db.commit()

    def _create(self, **overrides) -> dict:
        form = {
            "title": "Getting From BCN to Sitges",
            "content": "word " * 450,
            "category_id": self.category_id,
            "tag_ids": self.tag_ids,
        }
        form.update(overrides)
        res = self.client.post("/api/admin/blog/posts", json=form, headers=self.admin_headers)
        self.assertEqual(res.status_code, 201, res.text)
        return res.json()

    def test_create_derives_fields(self) -> None:
        post = self._create()
        self.assertEqual(post["slug"], "getting-from-bcn-to-sitges")
        self.assertEqual(post["reading_time_minutes"], 3)
        self.assertEqual(post["author"]["id"], self.admin_id)
        self.assertEqual(post["category"]["slug"], "news")
        self.assertEqual(sorted(t["name"] for t in post["tags"]), ["Airports", "Tips"])
        self.assertIsNone(post["published_at"])
        self.assertTrue(page_cache.was_revalidated("path", "/blog"))

    def test_conflict_is_caught_before_upload(self) -> None:
        first = self._create()
        second = self._create(title="Sitges by Night")
        with patch.object(blog_post_router, "upload_image") as upload:
            res = self.client.put(
                f"/api/admin/blog/posts/{second['id']}",
                json={"title": "Sitges by Night", "slug": first["slug"], "content": "word",
                      "image_base64": PNG_DATA_URL},
                headers=self.admin_headers,
            )
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["detail"], "A post with this slug already exists")
        upload.assert_not_called()

    def test_created_published_is_stamped(self) -> None:
        post = self._create(status="published")
        self.assertIsNotNone(post["published_at"])

    def test_published_at_survives_republish(self) -> None:
        post = self._create(status="published")
        first = post["published_at"]

        res = self.client.patch(f"/api/admin/blog/posts/{post['id']}/status", json={"status": "draft"},
                                headers=self.admin_headers)
        self.assertEqual(res.json()["published_at"], first)

        res = self.client.patch(f"/api/admin/blog/posts/{post['id']}/status", json={"status": "published"},
                                headers=self.admin_headers)
        self.assertEqual(res.json()["published_at"], first)

    def test_update_publishes_and_replaces_tags(self) -> None:
        post = self._create(tag_ids=[self.tag_ids[0]])
        res = self.client.put(
            f"/api/admin/blog/posts/{post['id']}",
            json={"title": "Updated", "status": "published", "tag_ids": [self.tag_ids[1]], "content": "short"},
            headers=self.admin_headers,
        )
        self.assertEqual(res.status_code, 200, res.text)
        body = res.json()
        self.assertEqual([t["name"] for t in body["tags"]], ["Tips"])
        self.assertEqual(body["reading_time_minutes"], 1)
        self.assertIsNotNone(body["published_at"])
        self.assertIsNone(body["category"])

    def test_unknown_tag_is_rejected(self) -> None:
        res = self.client.post("/api/admin/blog/posts", json={"title": "X", "tag_ids": ["nope"]},
                               headers=self.admin_headers)
        self.assertEqual(res.status_code, 400)
        self.assertEqual(self.count(BlogPost), 0)

    def test_filters_and_featured_toggle(self) -> None:
        first = self._create(title="Alpha", tag_ids=[])
        self._create(title="Beta", status="published", tag_ids=[])

        res = self.client.patch(f"/api/admin/blog/posts/{first['id']}/featured", json={},
                                headers=self.admin_headers)
        self.assertTrue(res.json()["is_featured"])

        res = self.client.get("/api/admin/blog/posts?is_featured=true", headers=self.admin_headers)
        self.assertEqual([p["title"] for p in res.json()["items"]], ["Alpha"])
        res = self.client.get("/api/admin/blog/posts?status=published", headers=self.admin_headers)
        self.assertEqual([p["title"] for p in res.json()["items"]], ["Beta"])
        res = self.client.get("/api/admin/blog/posts?is_featured=all&search=a", headers=self.admin_headers)
        self.assertEqual(res.json()["total"], 2)

    def test_delete_detaches_tags(self) -> None:
        post = self._create()
        res = self.client.delete(f"/api/admin/blog/posts/{post['id']}", headers=self.admin_headers)
        self.assertEqual(res.status_code, 204)
        self.assertEqual(self.count(BlogPost), 0)

        res = self.client.delete(f"/api/admin/blog/tags/{self.tag_ids[0]}", headers=self.admin_headers)
        self.assertEqual(res.status_code, 204)


if __name__ == "__main__":
    unittest.main()
