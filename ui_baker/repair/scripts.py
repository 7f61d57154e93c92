"""Render-mutation payloads evaluated inside the page.

Each constant is a JS function literal invoked through ``PageHandle.call``
with JSON arguments. Python owns which mutation to request and how to read
the returned geometry; the payload text itself stays here.
"""

from __future__ import annotations

ISOLATION_STYLE_IDS = (
    "repair-isolation-style",
    "repair-inplace-style",
    "repair-color-style",
    "bake-isolation-style",
)
CLONE_MARKER = "data-repair-clone"
FOCUS_MARKER = "data-repair-focus"
SAVED_FILTER_ATTR = "data-repair-original-filter"
FOCUS_SELECTOR = f'[{FOCUS_MARKER}="1"]'

_FREEZE_RULES = """[
    '*, *::before, *::after {',
    '  transition-property: none !important;',
    '  transition-duration: 0s !important;',
    '  transition-delay: 0s !important;',
    '  animation: none !important;',
    '}',
  ]"""

_NEUTRAL_PAGE_RULES = """[
    'html, body {',
    '  background: transparent !important;',
    '  background-color: transparent !important;',
    '  background-image: none !important;',
    '}',
    'html::before, html::after, body::before, body::after {',
    '  content: none !important;',
    '  display: none !important;',
    '}',
  ]"""

# Shared style-override bookkeeping; every touched property is restored by CLEANUP.
_SET_STYLE = """
  const state = window.__bakeCleanupState || (window.__bakeCleanupState = {
    touchedNodes: [], hiddenTextNodes: [], hiddenControlValues: [],
  });
  const setStyle = (node, prop, value) => {
    if (!node || node.nodeType !== 1) return;
    if (!node.__bakeMarked) {
      node.__bakeMarked = true;
      node.__bakePrevStyles = node.__bakePrevStyles || {};
      state.touchedNodes.push(node);
    }
    if (!Object.prototype.hasOwnProperty.call(node.__bakePrevStyles, prop)) {
      node.__bakePrevStyles[prop] = {
        value: node.style.getPropertyValue(prop),
        priority: node.style.getPropertyPriority(prop),
      };
    }
    node.style.setProperty(prop, value, 'important');
  };
"""

CLEANUP = """(styleIds) => {
  for (const clone of document.querySelectorAll('[data-repair-clone="1"]')) clone.remove();
  for (const item of document.querySelectorAll('[data-repair-original-filter]')) {
    const saved = item.getAttribute('data-repair-original-filter');
    if (saved === '__EMPTY__') item.style.removeProperty('filter');
    else item.style.filter = saved;
    item.removeAttribute('data-repair-original-filter');
    item.style.removeProperty('will-change');
  }
  for (const item of document.querySelectorAll('[data-repair-focus="1"]')) {
    item.removeAttribute('data-repair-focus');
  }
  const state = window.__bakeCleanupState;
  if (state) {
    for (const entry of state.hiddenTextNodes || []) {
      if (entry && entry.node) entry.node.textContent = entry.text || '';
    }
    for (const entry of state.hiddenControlValues || []) {
      if (!entry || !entry.node) continue;
      try { entry.node.value = entry.value || ''; } catch (_) {}
      if (entry.placeholder != null) entry.node.setAttribute('placeholder', entry.placeholder);
    }
    for (const node of state.touchedNodes || []) {
      const prev = node.__bakePrevStyles || {};
      for (const prop of Object.keys(prev)) {
        if (prev[prop] && prev[prop].value) node.style.setProperty(prop, prev[prop].value, prev[prop].priority || '');
        else node.style.removeProperty(prop);
      }
      delete node.__bakePrevStyles;
      delete node.__bakeMarked;
    }
    window.__bakeCleanupState = { touchedNodes: [], hiddenTextNodes: [], hiddenControlValues: [] };
  }
  let removed = 0;
  for (const id of styleIds) {
    const tag = document.getElementById(id);
    if (tag) { tag.remove(); removed += 1; }
  }
  return removed;
}"""

CLONE_SETUP = (
    """(selector, options) => {
  const stripTextTree = (root) => {
    const walker = document.createTreeWalker(root, NodeFilter.SHOW_TEXT, null);
    const textNodes = [];
    while (walker.nextNode()) textNodes.push(walker.currentNode);
    for (const textNode of textNodes) textNode.textContent = '';
    for (const control of root.querySelectorAll('input, textarea, select')) {
      if ('value' in control) {
        try { control.value = ''; } catch (_) {}
      }
      if (control.hasAttribute('value')) control.setAttribute('value', '');
      if (control.hasAttribute('placeholder')) control.setAttribute('placeholder', '');
      control.style.color = 'transparent';
      control.style.webkitTextFillColor = 'transparent';
      control.style.textShadow = 'none';
      control.style.caretColor = 'transparent';
    }
  };
  const hideDirectText = (root) => {
    for (const child of Array.from(root.childNodes)) {
      if (child.nodeType === Node.TEXT_NODE) child.textContent = '';
    }
  };

  const target = document.querySelector(selector);
  if (!target) return null;
  const rect = target.getBoundingClientRect();
  if (rect.width <= 0 || rect.height <= 0) return null;

  const clone = target.cloneNode(true);
  clone.setAttribute('data-repair-clone', '1');
  clone.removeAttribute('data-bake-id');
  for (const inner of clone.querySelectorAll('[data-bake-id]')) inner.removeAttribute('data-bake-id');
  Object.assign(clone.style, {
    position: 'fixed', left: '0px', top: '0px', margin: '0',
    transform: 'none', transformOrigin: '0 0',
    width: `${rect.width}px`, height: `${rect.height}px`, zIndex: '2147483647',
  });
  if (options.decoupleOpacity) clone.style.opacity = '1';

  if (options.hideChildren) {
    clone.innerHTML = '';
  } else if (options.stripText) {
    if (options.hideOwnText) hideDirectText(clone);
    stripTextTree(clone);
  }
  document.body.appendChild(clone);

  const styleTag = document.createElement('style');
  styleTag.id = 'repair-isolation-style';
  const rules = """
    + _FREEZE_RULES
    + """;
  if (options.isolateNode) {
    rules.push(..."""
    + _NEUTRAL_PAGE_RULES
    + """, 'body > *:not([data-repair-clone="1"]) { visibility: hidden !important; }');
  }
  styleTag.textContent = rules.join('\\n');
  document.head.appendChild(styleTag);

  return {
    clip: { x: 0, y: 0, width: Math.max(1, Math.ceil(rect.width)), height: Math.max(1, Math.ceil(rect.height)) },
    rect: { x: rect.left, y: rect.top, width: rect.width, height: rect.height },
  };
}"""
)

IN_PLACE_SETUP = (
    """(primarySelector, fallbackSelector, styleId, options) => {
  const target = document.querySelector(primarySelector)
    || (fallbackSelector ? document.querySelector(fallbackSelector) : null);
  if (!target) return null;
  target.setAttribute('data-repair-focus', '1');
  const focus = '[data-repair-focus="1"]';
  const rect = target.getBoundingClientRect();
  if (rect.width <= 0 || rect.height <= 0) return null;

  const rules = """
    + _FREEZE_RULES
    + """;
  if (options.isolateNode) {
    rules.push(..."""
    + _NEUTRAL_PAGE_RULES
    + """, 'body * { visibility: hidden !important; }');
    if (options.hideChildren) {
      rules.push(`${focus} { visibility: visible !important; }`, `${focus} * { visibility: hidden !important; }`);
    } else {
      rules.push(`${focus}, ${focus} * { visibility: visible !important; }`);
    }
  } else if (options.hideChildren) {
    rules.push(`${focus} * { visibility: hidden !important; }`);
  }
  if (options.stripText) {
    const scope = options.hideOwnText ? `${focus}, ${focus} *` : `${focus} *`;
    rules.push(
      `${scope} {`,
      '  color: transparent !important;',
      '  -webkit-text-fill-color: transparent !important;',
      '  text-shadow: none !important;',
      '  caret-color: transparent !important;',
      '}',
      `${focus} input, ${focus} textarea, ${focus} select {`,
      '  color: transparent !important;',
      '  -webkit-text-fill-color: transparent !important;',
      '}',
    );
  }
  const styleTag = document.createElement('style');
  styleTag.id = styleId;
  styleTag.textContent = rules.join('\\n');
  document.head.appendChild(styleTag);

  const style = window.getComputedStyle(target);
  const finalRect = target.getBoundingClientRect();
  return {
    rect: { x: finalRect.left, y: finalRect.top, width: finalRect.width, height: finalRect.height },
    boxShadow: style.boxShadow || 'none',
    filter: style.filter || 'none',
  };
}"""
)

APPLY_FILTER = """(selector, filter) => {
  const target = document.querySelector(selector);
  if (!target) return false;
  const original = target.style.filter || '';
  target.setAttribute('data-repair-original-filter', original || '__EMPTY__');
  target.style.filter = original ? `${original} ${filter}`.trim() : filter;
  target.style.willChange = 'filter';
  return true;
}"""

RESTORE_FILTER = """(selector) => {
  const target = document.querySelector(selector);
  if (!target) return false;
  const saved = target.getAttribute('data-repair-original-filter');
  if (saved != null) {
    if (saved === '__EMPTY__') target.style.removeProperty('filter');
    else target.style.filter = saved;
    target.removeAttribute('data-repair-original-filter');
  }
  target.style.removeProperty('will-change');
  return true;
}"""

ENSURE_NODE_MARKER = """(nodeId, domPath) => {
  const escaped = String(nodeId || '').replace(/\\\\/g, '\\\\\\\\').replace(/"/g, '\\\\"');
  let target = document.querySelector(`[data-bake-id="${escaped}"]`);
  if (target) return true;
  if (domPath) {
    try { target = document.querySelector(domPath); } catch (_) { target = null; }
  }
  if (!target) return false;
  target.setAttribute('data-bake-id', String(nodeId));
  return true;
}"""

BAKE_IN_PLACE_SETUP = (
    """(selector, options) => {"""
    + _SET_STYLE
    + """
  const el = document.querySelector(selector);
  if (!el) return null;
  const rect = el.getBoundingClientRect();
  if (rect.width <= 0 || rect.height <= 0) return null;

  const rules = """
    + _FREEZE_RULES
    + """;
  if (!options.preserveSceneUnderlay) {
    rules.push(..."""
    + _NEUTRAL_PAGE_RULES
    + """, 'body * { visibility: hidden !important; }');
  }
  const styleTag = document.createElement('style');
  styleTag.id = 'bake-isolation-style';
  styleTag.textContent = rules.join('\\n');
  document.head.appendChild(styleTag);

  for (let cursor = el; cursor && cursor.nodeType === 1; cursor = cursor.parentElement) {
    setStyle(cursor, 'visibility', 'visible');
  }
  if (options.hideChildren) {
    for (const child of el.querySelectorAll('*')) setStyle(child, 'visibility', 'hidden');
    setStyle(el, 'color', 'transparent');
    setStyle(el, '-webkit-text-fill-color', 'transparent');
    setStyle(el, 'text-shadow', 'none');
  }
  if (options.hideOwnText) {
    for (const child of Array.from(el.childNodes)) {
      if (child.nodeType !== Node.TEXT_NODE || !(child.textContent || '').trim()) continue;
      state.hiddenTextNodes.push({ node: child, text: child.textContent });
      child.textContent = '';
    }
    const tag = String(el.tagName || '').toLowerCase();
    if (tag === 'input' || tag === 'textarea') {
      state.hiddenControlValues.push({ node: el, value: el.value, placeholder: el.getAttribute('placeholder') });
      try { el.value = ''; } catch (_) {}
      if (el.hasAttribute('placeholder')) el.setAttribute('placeholder', '');
      setStyle(el, 'caret-color', 'transparent');
    }
  }
  if (options.decoupleOpacity) setStyle(el, 'opacity', '1');
  if (options.preserveSceneUnderlay && options.suppressFaintBorder) {
    setStyle(el, 'border-color', 'transparent');
    setStyle(el, 'border-style', 'none');
    setStyle(el, 'border-width', '0');
    setStyle(el, 'border-image', 'none');
    setStyle(el, 'outline', 'none');
  }
  if (options.neutralizeTransforms) {
    for (let cursor = el; cursor && cursor.nodeType === 1; cursor = cursor.parentElement) {
      const computed = window.getComputedStyle(cursor);
      const match = (computed.transform || '').match(/^matrix\\(([^)]+)\\)$/);
      if (!match) continue;
      const [a, b, c, d, e, f] = match[1].split(',').map((v) => parseFloat(v));
      const angle = Math.atan2(b, a);
      if (Math.abs(angle) < 1e-6) continue;
      const cos = Math.cos(angle);
      const sin = Math.sin(angle);
      setStyle(cursor, 'transform',
        `matrix(${cos * a + sin * b}, ${-sin * a + cos * b}, ${cos * c + sin * d}, ${-sin * c + cos * d}, ${e}, ${f})`);
      setStyle(cursor, 'rotate', '0deg');
    }
  }

  const style = window.getComputedStyle(el);
  const finalRect = el.getBoundingClientRect();
  return {
    rect: { x: finalRect.left, y: finalRect.top, width: finalRect.width, height: finalRect.height },
    boxShadow: style.boxShadow || 'none',
    filter: style.filter || 'none',
  };
}"""
)

BACKGROUND_STACK_SETUP = (
    """(sourceSelector, stackSelectors) => {"""
    + _SET_STYLE
    + """
  const base = document.querySelector(sourceSelector);
  if (!base) return null;
  const rect = base.getBoundingClientRect();
  if (rect.width <= 0 || rect.height <= 0) return null;

  const styleTag = document.createElement('style');
  styleTag.id = 'bake-isolation-style';
  styleTag.textContent = [..."""
    + _FREEZE_RULES
    + """, ..."""
    + _NEUTRAL_PAGE_RULES
    + """, 'body > * { visibility: hidden !important; }'].join('\\n');
  document.head.appendChild(styleTag);

  const reveal = (node) => {
    for (let cursor = node; cursor && cursor.nodeType === 1; cursor = cursor.parentElement) {
      setStyle(cursor, 'visibility', 'visible');
    }
  };
  let revealed = 0;
  for (const selector of stackSelectors) {
    const node = document.querySelector(selector);
    if (!node) continue;
    reveal(node);
    revealed += 1;
  }
  reveal(base);
  return {
    rect: { x: rect.left, y: rect.top, width: rect.width, height: rect.height },
    revealed,
  };
}"""
)

__all__ = [
    "APPLY_FILTER",
    "BACKGROUND_STACK_SETUP",
    "BAKE_IN_PLACE_SETUP",
    "CLEANUP",
    "CLONE_MARKER",
    "CLONE_SETUP",
    "ENSURE_NODE_MARKER",
    "FOCUS_MARKER",
    "FOCUS_SELECTOR",
    "IN_PLACE_SETUP",
    "ISOLATION_STYLE_IDS",
    "RESTORE_FILTER",
    "SAVED_FILTER_ATTR",
]
