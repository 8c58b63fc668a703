"""Upstream artifacts shared by the index and request tests."""

UPSTREAM = "https://hexdocs.pm"
WRAPPER = "https://w"

API_REFERENCE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>API Reference - Ecto v3.12.5</title>
  <script defer src="dist/sidebar_items-1A2B3C4D.js"></script>
</head>
<body>
<h1>API Reference <small>ecto v3.12.5</small></h1>
<section class="details-list">
  <h2 id="modules" class="section-heading">
    <a class="hover-link" href="#modules"><i class="ri-link-m"></i></a>
    <span class="text">Modules</span>
  </h2>
  <div class="summary">
    <div class="summary-row">
      <div class="summary-signature">
        <a href="Ecto.html" translate="no">Ecto</a>
      </div>
      <div class="summary-synopsis"><p>Ecto is split into 4 main components.</p></div>
    </div>
    <div class="summary-row">
      <div class="summary-signature">
        <a href="Ecto.Repo.html" translate="no">Ecto.Repo</a>
      </div>
      <div class="summary-synopsis"><p>Defines a repository &amp; its API.</p></div>
    </div>
    <div class="summary-row">
      <div class="summary-signature">
        <a href="Ecto.Migration.html" translate="no">Ecto.Migration</a>
      </div>
    </div>
  </div>
</section>
<section class="details-list">
  <h2 id="tasks" class="section-heading"><span class="text">Mix Tasks</span></h2>
  <div class="summary-row">
    <div class="summary-signature">
      <a href="Mix.Tasks.Ecto.Create.html" translate="no">mix ecto.create</a>
    </div>
  </div>
</section>
</body>
</html>
"""

SIDEBAR_JS = (
    'sidebarNodes={"modules":['
    '{"id":"Ecto","title":"Ecto","group":""},'
    '{"id":"Ecto.Repo","title":"Ecto.Repo","group":"Repo"},'
    '{"id":"Ecto.Migration","title":"Ecto.Migration","deprecated":true,'
    '"group":"Migrations"}],'
    '"extras":['
    '{"id":"getting-started","title":"Getting Started","group":"Introduction",'
    '"headers":[{"id":"Adding Ecto","anchor":"adding-ecto"}]},'
    '{"id":"readme","title":"README"}],'
    '"tasks":['
    '{"id":"Mix.Tasks.Ecto.Create","title":"mix ecto.create","sections":[]},'
    '{"id":"Mix.Tasks.Ecto.Migrate","title":"mix ecto.migrate"}]};'
)

API_REFERENCE_URL = f"{UPSTREAM}/ecto/3.12.5/api-reference.html"
SIDEBAR_URL = f"{UPSTREAM}/ecto/3.12.5/dist/sidebar_items-1A2B3C4D.js"
