"""Reusable Kivy components for the Parrot client."""

from __future__ import annotations

from kivy.factory import Factory
from kivy.lang import Builder
from kivy.properties import BooleanProperty, NumericProperty, StringProperty
from kivymd.uix.card import MDCard


class InfoBannerCard(MDCard):
    """MDCard wrapper that exposes a message prop for KV templates."""

    message = StringProperty("")


class ReferenceRowCard(MDCard):
    """One saved reference sample; ``index`` points into the store's sample tuple."""

    index = NumericProperty(0)
    filename = StringProperty("")
    transcript = StringProperty("")
    selected = BooleanProperty(False)


Factory.register("InfoBannerCard", cls=InfoBannerCard)
Factory.register("ReferenceRowCard", cls=ReferenceRowCard)

COMPONENT_KV = """
<PTScaffold@MDBoxLayout>:
    orientation: "vertical"
    padding: app.theme.spacing.toolbar, 0, app.theme.spacing.toolbar, app.theme.spacing.toolbar
    canvas.before:
        Color:
            rgba: app.theme.palette.background
        Rectangle:
            pos: self.pos
            size: self.size

<PTToolbar@MDTopAppBar>:
    md_bg_color: 0, 0, 0, 0
    specific_text_color: app.theme.palette.text_primary
    elevation: 0
    left_action_items: []
    right_action_items: []
    anchor_title: "left"

<PTCard@MDCard>:
    orientation: "vertical"
    size_hint_y: None
    adaptive_height: True
    padding: app.theme.spacing.card_padding
    spacing: app.theme.spacing.grid
    radius: [22]
    md_bg_color: app.theme.palette.card
    line_color: 0, 0, 0, 0

<SectionHeading@MDLabel>:
    font_style: app.theme.typography.title
    theme_text_color: "Custom"
    text_color: app.theme.palette.text_primary
    bold: True
    size_hint_y: None
    height: self.texture_size[1]

<BodyText@MDLabel>:
    font_style: app.theme.typography.body
    theme_text_color: "Custom"
    text_color: app.theme.palette.text_secondary
    size_hint_y: None
    height: self.texture_size[1]

<PrimaryButton@MDFillRoundFlatIconButton>:
    size_hint_y: None
    height: "50dp"
    md_bg_color: app.theme.palette.generate
    text_color: app.theme.palette.text_primary
    icon_color: app.theme.palette.text_primary

<SecondaryButton@MDFillRoundFlatIconButton>:
    size_hint_y: None
    height: "50dp"
    md_bg_color: app.theme.palette.playback
    text_color: app.theme.palette.text_primary
    icon_color: app.theme.palette.text_primary

<RecordButton@MDFillRoundFlatIconButton>:
    size_hint_y: None
    height: "64dp"
    icon: "stop-circle" if app.is_recording else "record-circle"
    text: "Stop Recording" if app.is_recording else "Start Recording"
    md_bg_color: app.theme.palette.record
    text_color: app.theme.palette.text_primary
    icon_color: app.theme.palette.text_primary
    on_press: app.toggle_recording()

<RoundedInput@MDTextField>:
    mode: "rectangle"
    multiline: True
    helper_text_mode: "on_focus"
    line_color_focus: app.theme.palette.generate
    text_color_focus: app.theme.palette.text_primary
    text_color_normal: app.theme.palette.text_secondary
    size_hint_y: None
    height: "120dp"

<GenerationProgress@MDBoxLayout>:
    orientation: "vertical"
    size_hint_y: None
    height: "48dp" if app.is_generating else 0
    opacity: 1 if app.is_generating else 0
    spacing: "6dp"
    MDLabel:
        text: "Generating Speech... {}%".format(int(app.generation_progress * 100))
        theme_text_color: "Custom"
        text_color: app.theme.palette.text_secondary
        font_style: app.theme.typography.caption
    MDProgressBar:
        value: app.generation_progress * 100
        color: app.theme.palette.generate

<TimingInfo@MDLabel>:
    halign: "right"
    font_style: app.theme.typography.caption
    theme_text_color: "Custom"
    text_color: app.theme.palette.text_muted
    size_hint_y: None
    height: self.texture_size[1]
    text: app.timing_text

<ReferenceRow@ReferenceRowCard>:
    size_hint_y: None
    height: "76dp"
    padding: app.theme.spacing.grid
    radius: [14]
    md_bg_color: app.theme.palette.selected if root.selected else app.theme.palette.surface_alt
    line_color: 0, 0, 0, 0
    MDBoxLayout:
        orientation: "vertical"
        MDLabel:
            text: root.filename
            font_style: app.theme.typography.subtitle
            theme_text_color: "Custom"
            text_color: app.theme.palette.text_primary
        MDLabel:
            text: root.transcript
            shorten: True
            font_style: app.theme.typography.caption
            theme_text_color: "Custom"
            text_color: app.theme.palette.text_secondary
    MDIconButton:
        icon: "play-circle-outline"
        theme_icon_color: "Custom"
        icon_color: app.theme.palette.playback
        on_release: app.play_reference(int(root.index))
    MDIconButton:
        icon: "check-circle" if root.selected else "checkbox-blank-circle-outline"
        theme_icon_color: "Custom"
        icon_color: app.theme.palette.generate
        on_release: app.toggle_reference(int(root.index))

<InfoBanner@InfoBannerCard>:
    size_hint_y: None
    adaptive_height: True
    padding: app.theme.spacing.grid
    spacing: app.theme.spacing.grid
    md_bg_color: app.theme.palette.surface_alt
    line_color: 0, 0, 0, 0
    radius: [18]
    MDIcon:
        icon: "information-outline"
        theme_text_color: "Custom"
        text_color: app.theme.palette.generate
    MDLabel:
        text: root.message
        theme_text_color: "Custom"
        text_color: app.theme.palette.text_secondary
        font_style: app.theme.typography.body
        text_size: self.width, None
        size_hint_y: None
        height: self.texture_size[1]

<ActivityLog@MDCard>:
    orientation: "vertical"
    size_hint_y: None
    height: "180dp"
    padding: app.theme.spacing.card_padding
    radius: [22]
    md_bg_color: app.theme.palette.surface
    line_color: 0, 0, 0, 0
    SectionHeading:
        text: "Activity"
    ScrollView:
        do_scroll_x: False
        MDLabel:
            text: '\\n'.join(app.log_lines)
            theme_text_color: "Custom"
            text_color: app.theme.palette.text_secondary
            font_style: app.theme.typography.caption
            text_size: self.width, None
            size_hint_y: None
            height: self.texture_size[1]
"""


def load_components() -> None:
    """Register shared KV component templates."""
    Builder.load_string(COMPONENT_KV)


__all__ = ["load_components", "InfoBannerCard", "ReferenceRowCard"]
