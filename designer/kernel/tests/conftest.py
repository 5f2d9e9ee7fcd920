"""
Region Designer kernel test configuration.

Shared sample documents: one template with a horizontal body split into two
columns (the left one overridable), and one page that replaces the left
column's content.
"""

import pytest

TEMPLATE_ID = "16777215-101-731"
PAGE_ID = "16777215-101-900"

TEMPLATE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Template>
  <id>16777215-101-731</id>
  <name>Home</name>
  <theme>percussion</theme>
  <cssOverride>.banner { color: red; }</cssOverride>
  <regionTree>
    <rootRegion>
      <regionId>container</regionId>
      <children>
        <code><templateCode>#perc_templateHeader()</templateCode></code>
        <region>
          <regionId>header</regionId>
          <startTag>&lt;div style="height:120px;" class="perc-region perc-region-leaf perc-vertical" data-noautoresize="false" id="header"&gt; &lt;div class="perc-vertical"&gt;</startTag>
          <endTag>&lt;/div&gt;&lt;/div&gt;</endTag>
          <children>
            <code><templateCode>#region("header","","","","")</templateCode></code>
          </children>
        </region>
        <region>
          <regionId>body</regionId>
          <startTag>&lt;div class="perc-region perc-horizontal ui-helper-clearfix" data-noautoresize="false" id="body"&gt; &lt;div class="perc-horizontal ui-helper-clearfix"&gt;</startTag>
          <endTag>&lt;/div&gt;&lt;/div&gt;</endTag>
          <children>
            <region>
              <regionId>temp-region-3</regionId>
              <startTag>&lt;div style="width:200px;" class="perc-region perc-region-leaf perc-vertical perc-overridable" data-noautoresize="false" id="temp-region-3"&gt; &lt;div class="perc-vertical"&gt;</startTag>
              <endTag>&lt;/div&gt;&lt;/div&gt;</endTag>
              <children>
                <code><templateCode>#region("temp-region-3","","","","")</templateCode></code>
              </children>
            </region>
            <region>
              <regionId>temp-region-7</regionId>
              <startTag>&lt;div class="perc-region perc-region-leaf perc-fixed perc-vertical" data-noautoresize="true" id="temp-region-7"&gt; &lt;div class="perc-vertical"&gt;</startTag>
              <endTag>&lt;/div&gt;&lt;/div&gt;</endTag>
              <cssClass>sidebar</cssClass>
              <children>
                <code><templateCode>#region("temp-region-7","","","","")</templateCode></code>
              </children>
            </region>
          </children>
        </region>
        <code><templateCode>#perc_templateFooter()</templateCode></code>
      </children>
    </rootRegion>
    <regionWidgetAssociations>
      <regionWidget>
        <regionId>header</regionId>
        <widgetItems>
          <widgetItem>
            <id>1001</id>
            <definitionId>percRawHtml</definitionId>
            <name>Logo</name>
            <properties>
              <property><name>html</name><value>"&lt;b&gt;Acme&lt;/b&gt;"</value></property>
            </properties>
            <cssProperties/>
          </widgetItem>
        </widgetItems>
      </regionWidget>
      <regionWidget>
        <regionId>temp-region-3</regionId>
        <widgetItems>
          <widgetItem>
            <id>1002</id>
            <definitionId>percNavigation</definitionId>
            <properties>
              <property><name>depth</name><value>3</value></property>
              <property><name>label</name><value></value></property>
            </properties>
          </widgetItem>
          <widgetItem>
            <id>1003</id>
            <definitionId>percRichText</definitionId>
          </widgetItem>
        </widgetItems>
      </regionWidget>
    </regionWidgetAssociations>
  </regionTree>
</Template>
"""

PAGE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Page>
  <id>16777215-101-900</id>
  <name>About</name>
  <templateId>16777215-101-731</templateId>
  <regionBranches>
    <regions>
      <region>
        <regionId>temp-region-3</regionId>
        <startTag>&lt;div class="perc-region perc-vertical perc-overridable" data-noautoresize="false" id="temp-region-3"&gt; &lt;div class="perc-vertical"&gt;</startTag>
        <endTag>&lt;/div&gt;&lt;/div&gt;</endTag>
        <children>
          <region>
            <regionId>page-region-1</regionId>
            <startTag>&lt;div class="perc-region perc-region-leaf perc-vertical" data-noautoresize="false" id="page-region-1"&gt; &lt;div class="perc-vertical"&gt;</startTag>
            <endTag>&lt;/div&gt;&lt;/div&gt;</endTag>
            <children>
              <code><templateCode>#region("page-region-1","","","","")</templateCode></code>
            </children>
          </region>
          <region>
            <regionId>page-region-2</regionId>
            <startTag>&lt;div class="perc-region perc-region-leaf perc-vertical" data-noautoresize="false" id="page-region-2"&gt; &lt;div class="perc-vertical"&gt;</startTag>
            <endTag>&lt;/div&gt;&lt;/div&gt;</endTag>
            <children>
              <code><templateCode>#region("page-region-2","","","","")</templateCode></code>
            </children>
          </region>
        </children>
      </region>
    </regions>
    <regionWidgetAssociations>
      <regionWidget>
        <regionId>page-region-2</regionId>
        <widgetItems>
          <widgetItem>
            <id>2001</id>
            <definitionId>percImage</definitionId>
          </widgetItem>
        </widgetItems>
      </regionWidget>
    </regionWidgetAssociations>
  </regionBranches>
  <metadata><keywords>about us</keywords></metadata>
</Page>
"""


@pytest.fixture
def template_xml():
    return TEMPLATE_XML


@pytest.fixture
def page_xml():
    return PAGE_XML
