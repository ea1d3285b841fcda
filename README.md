# thomasbot

Building blocks for a Discord bot that serves a school community: per-guild
configuration, message embeds, on-demand "hive" channels, role requests,
moderation, link and image commands, cafeteria menus, class schedules and a
small audio mixer for voice clips.

The package holds the logic of each command. It talks to Discord through a
session object that you supply, so the handlers can be driven by any client
library or by a fake session in tests. Events and interactions are plain
mappings in Discord's wire form (`channel_id`, `guild_id`, `author`,
`member`, `data`, `options` and so on), and every reply goes back through a
method of the session, such as `channel_message_send`,
`channel_message_send_embed`, `interaction_respond`, `channel`,
`guild_member` or `guild_roles`. The session also carries the bot's own user
ID as `bot_user_id`.

## Guild configuration

Each guild has a `Configuration` (in `thomasbot.config`): welcome channel and
text, welcome DMs, role management with role sets, hive categories,
looking-for-players channels and class schedules. `Configuration.from_dict`
and `Configuration.to_dict` convert to and from the JSON document form.

```python
from thomasbot.config import LocalDatabase, GuildNotFoundError

database = LocalDatabase.from_file("guilds.json")

try:
    conf = database.config_for_guild("123456789012345678")
except GuildNotFoundError:
    conf = None

for guild in database.get_all_configurations():
    print(guild.guild_id, len(guild.hives))
```

`LocalDatabase.from_file` reads a JSON object that maps guild IDs to
configurations. `MongoDatabase.connect(url, name)` gives the same interface
backed by the `configuration` collection of a MongoDB database; both raise
`GuildNotFoundError` for a guild they do not know.

## Embeds

`Embed` (in `thomasbot.embed`) builds message embeds with chained setters and
can cut them down to Discord's size limits.

```python
from thomasbot.embed import Embed

embed = (
    Embed()
    .set_title("Attendance List")
    .add_field("people in channel", "Alice\nBob")
    .set_footer("counted just now")
    .truncate()
)
payload = embed.to_dict()
```

`to_dict` leaves out empty parts of the embed.

## Commands

Each command lives in its own module and exposes handlers that take a session
and the incoming event:

- `thomasbot.hive`: `HiveCommand` creates on-demand text and voice channels
  from request channels, reuses voice channels from the junkyard category,
  archives channels and lets members leave them.
- `thomasbot.hive_access`: `handle_join`, `handle_reaction` and `join` give
  members access to hidden hive channels; `say_attendance` lists who has
  access to a channel and who wrote in it; `say_verify` announces a channel at
  the info desk.
- `thomasbot.members`: `MemberCommands` welcomes new members (with
  `render_welcome` filling `{{.Field}}` references in the welcome text), sends
  role selection menus by DM and runs the add, replace and deny approval flow.
- `thomasbot.moderation`: `ModerationCommands` removes links posted by guests,
  limits guests' reactions, mutes and unmutes, cleans channels, forwards
  alerts and counts members per role. `TTLCache` is the expiring store it uses
  to avoid repeated checks and notifications.
- `thomasbot.links`: `LinkCommands` answers with one of 25 fixed links.
- `thomasbot.images`: `ImagesCommands` answers with image embeds, some picked
  at random from a numbered series.
- `thomasbot.pronostiek`: `PronostiekCommand` posts prediction-game rankings.
- `thomasbot.menu`: `MenuCommand` shows the cafeteria menu for a campus.
- `thomasbot.schedule`: `ScheduleCommand` shows the coming week's classes
  from an iCalendar feed; `parse_schedule` does the same on a calendar you
  already have.

```python
from thomasbot.links import LinkCommands

links = LinkCommands()
print(links.reply_for("canvas"))
```

The commands that fetch data over HTTP (`MenuCommand`, `PronostiekCommand`,
`ScheduleCommand`) accept a `fetch` callable, so you can supply your own
download function.

Slash commands are registered with `install_slash_command(session, guild_id,
app)` from `thomasbot.slash`, which creates a command, updates it when its
options changed, and leaves it alone otherwise. An empty guild ID installs the
command globally. Failures raise `SlashInstallError`.

## Helpers

- `thomasbot.sudo`: `is_admin`, `is_itf_game_admin` and `is_bot_dev` check a
  user ID against fixed lists of privileged users.
- `thomasbot.voice`: `find_voice_user` returns the voice channel a user is in,
  raising `NotInVoiceError` when there is none.
- `thomasbot.mixer`: `Mixer` reads WAV files into `InputStream`s, plays clips
  with the same stream ID one after another, mixes different streams together
  with clipping at the 16-bit peak, and hands frames of 960 samples (20 ms at
  48 kHz mono) to a sink callable.

## What the package does not do

There is no bot program here: nothing logs in to Discord, keeps a gateway
connection or routes events to the handlers, and the package installs no
command to run. You wire the handlers to your own client and session. The
mixer produces raw PCM frames only; it does not encode audio or send it to a
voice connection.

## Tests

The test suite uses pytest; install the `test` extra to get it and run
`pytest`.